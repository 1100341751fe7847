"""Background thread runner for workflow runs."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from agent_workflow_engine.executors.base import PromptExecutor
from agent_workflow_engine.logging import run_context
from agent_workflow_engine.server.run_store import RunRecord, RunStore
from agent_workflow_engine.workflow.definition import WorkflowDefinition
from agent_workflow_engine.workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)


def start_workflow_run(
    *,
    record: RunRecord,
    definition: WorkflowDefinition,
    inputs: dict[str, Any],
    make_executor: Callable[[], PromptExecutor],
    default_agent: str,
    run_store: RunStore,
) -> threading.Thread:
    """Run an already queued record on a daemon thread."""

    thread = threading.Thread(
        target=_run_workflow,
        name=f"workflow-{record.workflow}-{record.run_id}",
        daemon=True,
        kwargs={
            "run_id": record.run_id,
            "definition": definition,
            "inputs": inputs,
            "state_file": Path(record.state_file),
            "make_executor": make_executor,
            "default_agent": default_agent,
            "run_store": run_store,
        },
    )
    thread.start()
    return thread


def _run_workflow(
    *,
    run_id: str,
    definition: WorkflowDefinition,
    inputs: dict[str, Any],
    state_file: Path,
    make_executor: Callable[[], PromptExecutor],
    default_agent: str,
    run_store: RunStore,
) -> None:
    with run_context(run_id):
        run_store.update(run_id, status="running")

        try:
            engine = WorkflowEngine(make_executor(), default_agent=default_agent)
            result = engine.run(definition, inputs, state_path=state_file)
            run_store.update(
                run_id,
                status="succeeded",
                outcome=result.outcome,
                reason=result.reason,
            )

        except Exception as e:
            logger.exception("Workflow run failed")
            run_store.update(run_id, status="failed", error=str(e))
