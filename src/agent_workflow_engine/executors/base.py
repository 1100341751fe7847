"""The prompt executor contract and its error types."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class PromptExecutor(Protocol):
    """Turns an agent name and a rendered prompt into response text.

    Implementations raise on unrecoverable errors; the workflow engine does not
    catch them. `tools` is the step role's tool switch map (name -> enabled);
    executors that offer no tools ignore it.
    """

    def execute(
        self, agent_name: str, prompt: str, *, tools: Mapping[str, bool] | None = None
    ) -> str: ...


class ExecutorError(RuntimeError):
    """Base class for prompt executor failures."""


class BackendError(ExecutorError):
    """The session backend reported an error for a prompt."""


class MaxStepsExceededError(ExecutorError):
    """The tool-calling loop ran out of turns without a text reply."""

    def __init__(self, max_steps: int) -> None:
        super().__init__("Max steps exceeded")
        self.max_steps = max_steps


class PromptSubmissionError(ExecutorError):
    """A prompt could not be submitted within the retry budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__("Failed to send prompt after retries (Session likely busy)")
        self.attempts = attempts


class PromptTimeoutError(ExecutorError):
    """No reply appeared in the session history before the deadline."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__("Timeout waiting for LLM")
        self.timeout_seconds = timeout_seconds
