"""Build a prompt executor from settings."""

from __future__ import annotations

import logging
from typing import Literal

from agent_workflow_engine.backend.client import OpencodeClient
from agent_workflow_engine.backend.models import ModelRef
from agent_workflow_engine.config import WorkflowSettings
from agent_workflow_engine.executors.base import PromptExecutor
from agent_workflow_engine.executors.llm import LLMPromptExecutor
from agent_workflow_engine.executors.polling import PollingExecutor
from agent_workflow_engine.executors.tool_calling import ToolCallingExecutor
from agent_workflow_engine.llm.factory import LLMFactory
from agent_workflow_engine.tools.loader import load_tool_modules
from agent_workflow_engine.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

ExecutorKind = Literal["llm", "polling", "tools"]


def build_executor(
    settings: WorkflowSettings,
    *,
    kind: ExecutorKind | None = None,
    session_id: str | None = None,
    model: str | None = None,
    tool_registry: ToolRegistry | None = None,
) -> PromptExecutor:
    """Create the executor selected by `kind` (default: `settings.executor.kind`).

    Args:
        settings: Loaded settings.
        kind: Executor override.
        session_id: Backend session; required for ``polling`` and ``tools``.
        model: Model override, typically the workflow definition's ``model``.
            ``provider/model`` for backend executors, a bare model name for ``llm``.
        tool_registry: Tools offered by the ``tools`` executor. Defaults to the
            modules named by ``settings.executor.tool_modules``.

    Raises:
        ValueError: If the configuration is incomplete for the chosen executor.
    """

    chosen = kind or settings.executor.kind
    logger.info("Building prompt executor", extra={"executor": chosen})

    if chosen == "llm":
        return LLMPromptExecutor(LLMFactory.create(settings.llm, model=model))

    if not session_id:
        raise ValueError(f"A session id is required for the {chosen!r} executor")

    backend = OpencodeClient(
        base_url=settings.backend.base_url,
        timeout=settings.backend.request_timeout_seconds,
    )

    if chosen == "polling":
        return PollingExecutor(
            backend,
            session_id,
            model=ModelRef.parse(model or settings.backend.model),
            poll_interval_seconds=settings.executor.poll_interval_seconds,
            timeout_seconds=settings.executor.poll_timeout_seconds,
            max_submit_attempts=settings.executor.submit_attempts,
            submit_retry_delay_seconds=settings.executor.submit_retry_delay_seconds,
        )

    if chosen == "tools":
        if tool_registry is None:
            tool_registry = load_tool_modules(settings.executor.parsed_tool_modules())
        return ToolCallingExecutor(
            backend,
            tool_registry,
            session_id,
            max_steps=settings.executor.max_tool_steps,
        )

    raise ValueError(f"Unsupported executor: {chosen}")
