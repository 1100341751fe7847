"""FastAPI app factory.

Endpoints are thin wrappers over the workflow engine; runs execute on
background threads and are tracked in a JSON-file run store.
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from agent_workflow_engine import __version__
from agent_workflow_engine.executors.base import PromptExecutor
from agent_workflow_engine.executors.factory import build_executor
from agent_workflow_engine.server.config import ServerSettings
from agent_workflow_engine.server.models import (
    RunRequest,
    RunStatus,
    WorkflowRun,
    WorkflowSummary,
)
from agent_workflow_engine.server.run_store import RunRecord, RunStore
from agent_workflow_engine.server.runner import start_workflow_run
from agent_workflow_engine.tools.registry import ToolRegistry
from agent_workflow_engine.workflow.definition import WorkflowDefinition, load_definition
from agent_workflow_engine.workflow.state_store import ScopeStore

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[WorkflowDefinition, RunRequest], PromptExecutor]

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def _iso_to_dt(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.now(tz=UTC)


def _to_api_run(record: RunRecord) -> WorkflowRun:
    return WorkflowRun(
        run_id=record.run_id,
        workflow=record.workflow,
        status=cast(RunStatus, record.status),
        created_at=_iso_to_dt(record.created_at),
        updated_at=_iso_to_dt(record.updated_at),
        outcome=record.outcome,
        reason=record.reason,
        error=record.error,
    )


def _workflow_file(settings: ServerSettings, name: str) -> Path:
    if not _NAME_RE.match(name) or name.endswith(".json"):
        raise HTTPException(status_code=400, detail="Invalid workflow name")
    return settings.workflows_path / f"{name}.json"


def _load_workflow_or_fail(settings: ServerSettings, name: str) -> WorkflowDefinition:
    path = _workflow_file(settings, name)
    try:
        return load_definition(path)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Workflow not found") from None
    except ValidationError as e:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Stored workflow is invalid",
                "errors": e.errors(include_url=False, include_context=False),
            },
        ) from None


def create_app(
    settings: ServerSettings | None = None,
    executor_factory: ExecutorFactory | None = None,
    tool_registry: ToolRegistry | None = None,
) -> FastAPI:
    """Build the API app.

    Args:
        settings: Server settings; loaded from the environment when omitted.
        executor_factory: Builds the executor for a run, inside the run thread.
        tool_registry: Tools offered to runs using the `tools` executor. When
            omitted, the modules in `WORKFLOW_EXECUTOR_TOOL_MODULES` are loaded.
    """

    settings = settings or ServerSettings()

    def default_executor_factory(definition: WorkflowDefinition, req: RunRequest) -> PromptExecutor:
        return build_executor(
            settings,
            kind=req.executor,
            session_id=req.session_id,
            model=definition.model,
            tool_registry=tool_registry,
        )

    make_executor = executor_factory or default_executor_factory

    app = FastAPI(
        title="Agent Workflow Engine",
        version=__version__,
        description="REST API for running multi-round LLM agent workflows.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    run_store = RunStore(settings.runs_index_file)
    interrupted = run_store.fail_interrupted()
    if interrupted:
        logger.warning(
            "Marked runs left over by a previous process as failed",
            extra={"run_ids": interrupted},
        )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/workflows", response_model=list[WorkflowSummary])
    def list_workflows() -> list[WorkflowSummary]:
        directory = settings.workflows_path
        if not directory.is_dir():
            return []

        summaries: list[WorkflowSummary] = []
        for path in sorted(directory.glob("*.json")):
            try:
                definition = load_definition(path)
            except (OSError, ValidationError):
                logger.warning("Skipping unreadable workflow", extra={"path": str(path)})
                continue
            summaries.append(
                WorkflowSummary(
                    name=path.stem,
                    id=definition.id or path.stem,
                    description=definition.description,
                    roles=sorted(definition.roles),
                    max_rounds=definition.flow.round.max_rounds,
                )
            )
        return summaries

    @app.get("/api/workflows/{name}")
    def get_workflow(name: str) -> dict[str, Any]:
        return _load_workflow_or_fail(settings, name).to_json()

    @app.put("/api/workflows/{name}")
    def put_workflow(name: str, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
        path = _workflow_file(settings, name)
        try:
            definition = WorkflowDefinition.model_validate(body)
        except ValidationError as e:
            raise HTTPException(
                status_code=422, detail=e.errors(include_url=False, include_context=False)
            ) from None

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(definition.to_json(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.info("Workflow saved", extra={"workflow": name, "path": str(path)})
        return definition.to_json()

    @app.post("/api/workflows/{name}/runs", response_model=WorkflowRun, status_code=202)
    def start_run(name: str, req: RunRequest) -> WorkflowRun:
        definition = _load_workflow_or_fail(settings, name)

        run_id = req.run_id or str(req.inputs.get("runId") or "")
        run_id = run_id or f"req-{int(time.time() * 1000)}"
        if not _NAME_RE.match(run_id):
            raise HTTPException(status_code=400, detail="Invalid run id")

        record = run_store.create_if_inactive(
            run_id=run_id, workflow=name, state_file=settings.state_file_for(run_id)
        )
        if record is None:
            raise HTTPException(status_code=409, detail="Run is already in progress")

        start_workflow_run(
            record=record,
            definition=definition,
            inputs={**req.inputs, "runId": run_id},
            make_executor=lambda: make_executor(definition, req),
            default_agent=settings.default_agent,
            run_store=run_store,
        )
        logger.info("Workflow run started", extra={"workflow": name, "run_id": run_id})
        return _to_api_run(record)

    @app.get("/api/runs", response_model=list[WorkflowRun])
    def list_runs() -> list[WorkflowRun]:
        return [_to_api_run(r) for r in run_store.list()]

    @app.get("/api/runs/{run_id}", response_model=WorkflowRun)
    def get_run(run_id: str) -> WorkflowRun:
        record = run_store.get(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        return _to_api_run(record)

    @app.get("/api/runs/{run_id}/state")
    def get_run_state(run_id: str) -> dict[str, Any]:
        record = run_store.get(run_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        scope = ScopeStore(Path(record.state_file)).load()
        if scope is None:
            raise HTTPException(status_code=404, detail="Run state not available yet")
        return scope.to_json()

    return app
