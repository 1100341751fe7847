"""Pydantic models for the REST server."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

RunStatus = Literal["queued", "running", "succeeded", "failed"]
ExecutorKind = Literal["llm", "polling", "tools"]


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class WorkflowSummary(_ApiModel):
    name: str
    id: str
    description: str = ""
    roles: list[str] = Field(default_factory=list)
    max_rounds: int


class RunRequest(_ApiModel):
    inputs: dict[str, Any] = Field(default_factory=dict)
    run_id: str | None = None
    executor: ExecutorKind | None = None
    session_id: str | None = None


class WorkflowRun(_ApiModel):
    run_id: str
    workflow: str
    status: RunStatus

    created_at: datetime
    updated_at: datetime

    outcome: str | None = None
    reason: str | None = None
    error: str | None = None
