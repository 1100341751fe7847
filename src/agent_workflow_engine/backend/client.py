"""HTTP client for the session backend.

Keeps raw HTTP out of the executors and makes them easy to test against a fake
backend.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from agent_workflow_engine.backend.models import (
    ModelRef,
    PromptResponse,
    SessionMessage,
    SessionStatus,
)

logger = logging.getLogger(__name__)


class OpencodeClient:
    """Small wrapper around the session backend's REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Backend base URL is required")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": "agent-workflow-engine",
            }
        )

    def _session_url(self, session_id: str, suffix: str = "") -> str:
        if not session_id.strip():
            raise ValueError("session_id is required")
        if suffix and not suffix.startswith("/"):
            suffix = "/" + suffix
        return f"{self._base_url}/session/{session_id}{suffix}"

    def prompt(
        self,
        session_id: str,
        parts: list[dict[str, object]],
        *,
        agent: str,
        model: ModelRef | None = None,
        skip_agent_run: bool = False,
        tools: list[dict[str, object]] | None = None,
    ) -> PromptResponse:
        """Append a message to the session.

        HTTP-level failures are reported through `PromptResponse.error`;
        connection failures raise `requests.RequestException`.
        """

        body: dict[str, Any] = {"parts": parts, "agent": agent}
        if model is not None:
            body["model"] = model.to_json()
        if skip_agent_run:
            body["skipAgentRun"] = True
        if tools:
            body["tools"] = tools

        resp = self._session.post(
            self._session_url(session_id, "message"), json=body, timeout=self._timeout
        )
        if resp.status_code >= 400:
            logger.debug(
                "Prompt rejected by backend",
                extra={"session_id": session_id, "status_code": resp.status_code},
            )
            return PromptResponse(error=f"HTTP {resp.status_code}: {resp.text[:500]}")

        data = resp.json() if resp.content else None
        if isinstance(data, dict) and data.get("error"):
            return PromptResponse(error=str(data["error"]))
        if isinstance(data, dict):
            return PromptResponse(data=SessionMessage.from_json(data))
        return PromptResponse()

    def messages(self, session_id: str, *, limit: int) -> list[SessionMessage]:
        resp = self._session.get(
            self._session_url(session_id, "message"),
            params={"limit": limit},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, list):
            raise ValueError("Unexpected messages response: expected a list")
        return [SessionMessage.from_json(item) for item in data if isinstance(item, dict)]

    def status(self, session_id: str) -> dict[str, SessionStatus]:
        """Return the status map of all sessions (the requested one may be absent)."""

        resp = self._session.get(f"{self._base_url}/session/status", timeout=self._timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected status response: expected an object")
        statuses = {str(key): SessionStatus.from_json(value) for key, value in data.items()}
        if session_id not in statuses:
            logger.debug("Session missing from status map", extra={"session_id": session_id})
        return statuses

    def close(self) -> None:
        self._session.close()
