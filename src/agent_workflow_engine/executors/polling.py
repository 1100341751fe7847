"""Prompt executor for a stateful session whose replies arrive asynchronously.

Completion is only observable through the session history, so the executor
submits a prompt and then polls the history for an assistant message newer
than the last one seen before submission.

Re-executing a step after a crash must not resubmit a prompt the session has
already seen. Before submitting, the tail of the history is checked:
- ``user: <prompt>`` followed by an assistant reply: return that reply.
- ``user: <prompt>`` with no reply yet: the prompt is in flight; just poll.

The session's agent configuration decides which tools run, so a role's tool
map is not applied here.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping

from agent_workflow_engine.backend.models import ModelRef, SessionBackend, SessionMessage
from agent_workflow_engine.executors.base import PromptSubmissionError, PromptTimeoutError

logger = logging.getLogger(__name__)

USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"


class PollingExecutor:
    def __init__(
        self,
        backend: SessionBackend,
        session_id: str,
        *,
        model: ModelRef | None = None,
        history_limit: int = 10,
        poll_interval_seconds: float = 0.5,
        timeout_seconds: float = 300.0,
        max_submit_attempts: int = 5,
        submit_retry_delay_seconds: float = 2.0,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        if max_submit_attempts < 1:
            raise ValueError("max_submit_attempts must be >= 1")

        self._backend = backend
        self._session_id = session_id
        self._model = model
        self._history_limit = history_limit
        self._poll_interval = poll_interval_seconds
        self._timeout = timeout_seconds
        self._max_attempts = max_submit_attempts
        self._retry_delay = submit_retry_delay_seconds

    def execute(
        self, agent_name: str, prompt: str, *, tools: Mapping[str, bool] | None = None
    ) -> str:
        history = self._history(self._history_limit)
        last = history[-1] if history else None
        known_last_id = last.id if last is not None else ""

        in_flight = False
        if last is not None:
            previous = history[-2] if len(history) > 1 else None
            if (
                last.role == ASSISTANT_ROLE
                and previous is not None
                and previous.role == USER_ROLE
                and previous.text == prompt
            ):
                logger.info(
                    "Found completed reply in session history",
                    extra={"agent": agent_name, "session_id": self._session_id},
                )
                return last.text

            if last.role == USER_ROLE and last.text == prompt:
                logger.info(
                    "Prompt already submitted; waiting for reply",
                    extra={"agent": agent_name, "session_id": self._session_id},
                )
                in_flight = True

        if not in_flight:
            self._submit(agent_name, prompt)

        return self._await_reply(known_last_id)

    def _history(self, limit: int) -> list[SessionMessage]:
        """Session history oldest-first; an unreadable history counts as empty."""

        try:
            messages = self._backend.messages(self._session_id, limit=limit)
        except Exception:
            logger.warning(
                "Failed to read session history",
                extra={"session_id": self._session_id},
                exc_info=True,
            )
            return []
        return sorted(messages, key=lambda m: m.created)

    def _submit(self, agent_name: str, prompt: str) -> None:
        parts: list[dict[str, object]] = [{"type": "text", "text": prompt}]

        for attempt in range(1, self._max_attempts + 1):
            try:
                response = self._backend.prompt(
                    self._session_id, parts, agent=agent_name, model=self._model
                )
            except Exception as e:
                logger.warning(
                    "Prompt submission raised",
                    extra={"attempt": attempt, "session_id": self._session_id, "error": str(e)},
                )
            else:
                if not response.error:
                    return
                logger.warning(
                    "Prompt submission rejected",
                    extra={
                        "attempt": attempt,
                        "session_id": self._session_id,
                        "error": response.error,
                    },
                )

            if attempt < self._max_attempts:
                time.sleep(self._retry_delay)

        raise PromptSubmissionError(self._max_attempts)

    def _await_reply(self, known_last_id: str) -> str:
        started = time.monotonic()
        seen_busy = False

        while True:
            if (time.monotonic() - started) >= self._timeout:
                logger.warning(
                    "Timed out waiting for reply",
                    extra={"session_id": self._session_id, "timeout_seconds": self._timeout},
                )
                raise PromptTimeoutError(self._timeout)

            time.sleep(self._poll_interval)

            reply = self._newer_assistant_message(known_last_id)
            if reply is not None:
                return reply.text

            # Advisory only; completion is decided by the history check above.
            if self._is_busy() and not seen_busy:
                seen_busy = True
                logger.debug("Session reported busy", extra={"session_id": self._session_id})

    def _newer_assistant_message(self, known_last_id: str) -> SessionMessage | None:
        history = self._history(5)
        if not history:
            return None
        latest = history[-1]
        if latest.id != known_last_id and latest.role == ASSISTANT_ROLE:
            return latest
        return None

    def _is_busy(self) -> bool:
        try:
            statuses = self._backend.status(self._session_id)
        except Exception:
            logger.debug("Failed to read session status", exc_info=True)
            return False
        status = statuses.get(self._session_id)
        return status is not None and status.busy
