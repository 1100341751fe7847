"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest

from agent_workflow_engine.config import LLMConfig, WorkflowSettings
from agent_workflow_engine.workflow.definition import WorkflowDefinition


class ScriptedExecutor:
    """Prompt executor that replays canned replies and records every call."""

    def __init__(self, replies: Iterable[str] | Callable[[str, str], str]) -> None:
        self._reply = replies if callable(replies) else None
        self._replies = [] if callable(replies) else list(replies)
        self.calls: list[tuple[str, str]] = []
        self.tools_seen: list[Mapping[str, bool] | None] = []

    def execute(
        self, agent_name: str, prompt: str, *, tools: Mapping[str, bool] | None = None
    ) -> str:
        self.calls.append((agent_name, prompt))
        self.tools_seen.append(tools)
        if self._reply is not None:
            return self._reply(agent_name, prompt)
        if not self._replies:
            raise AssertionError(f"Unexpected executor call #{len(self.calls)}: {prompt[:80]!r}")
        return self._replies.pop(0)


def make_definition(**overrides: Any) -> WorkflowDefinition:
    """A worker -> verifier round; `overrides` replace top-level document keys."""

    document: dict[str, Any] = {
        "id": "worker-verifier",
        "roles": {
            "worker": {"systemPrompt": ""},
            "verifier": {"systemPrompt": ""},
        },
        "flow": {
            "round": {
                "maxRounds": 3,
                "steps": [
                    {"key": "worker", "role": "worker", "prompt": "Do: {{user.task}}"},
                    {
                        "key": "verifier",
                        "role": "verifier",
                        "prompt": "Check: {{steps.worker.raw}}",
                        "transitions": [
                            {
                                "condition": {"field": "parsed.verdict", "equals": "approve"},
                                "outcome": "approved",
                            }
                        ],
                    },
                ],
                "defaultOutcome": {"outcome": "exhausted", "reason": "gave up"},
            }
        },
    }
    document.update(overrides)
    return WorkflowDefinition.model_validate(document)


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".workflow-state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def settings(tmp_path: Path, temp_state_dir: Path, llm_config: LLMConfig) -> WorkflowSettings:
    """Provide settings rooted in a temporary directory."""
    return WorkflowSettings(
        log_level="DEBUG",
        workflows_path=tmp_path / "workflows",
        state_path=temp_state_dir,
        llm=llm_config,
    )


@pytest.fixture
def worker_verifier() -> WorkflowDefinition:
    return make_definition()


@pytest.fixture
def definition_factory() -> Callable[..., WorkflowDefinition]:
    return make_definition


@pytest.fixture
def scripted() -> type[ScriptedExecutor]:
    return ScriptedExecutor
