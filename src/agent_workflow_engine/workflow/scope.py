"""The template scope: the mutable state of a workflow run.

The scope is what templates and ``@``-prefixed conditions resolve against and
what is persisted between steps. Only the top-level fields are typed; `user`
inputs and parsed step output are opaque JSON values.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agent_workflow_engine.workflow.definition import Outcome

BOOTSTRAP_COMPLETE = "_bootstrapComplete"
FINAL_COMPLETE = "_finalComplete"


class StepResult(BaseModel):
    """Output of one executed step."""

    key: str
    role: str
    raw: str
    parsed: Any = None
    type: Literal["agent"] = "agent"


class RunInfo(BaseModel):
    id: str


class RoundLogEntry(BaseModel):
    round: int
    steps: dict[str, StepResult] = Field(default_factory=dict)


class TemplateScope(BaseModel):
    """Persisted run state.

    `steps` only holds results of the current round; completed rounds are kept
    in `rounds_log`, one entry per round number.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    user: dict[str, Any] = Field(default_factory=dict)
    run: RunInfo
    state: dict[str, str] = Field(default_factory=dict)
    steps: dict[str, StepResult] = Field(default_factory=dict)
    round: int = Field(default=0, ge=0)
    max_rounds: int = Field(default=10, ge=1)
    bootstrap: dict[str, StepResult] | None = None
    final: dict[str, StepResult] | None = None
    current: StepResult | None = None
    current_step_key: str | None = None
    rounds_log: list[RoundLogEntry] = Field(default_factory=list)
    outcome: Outcome | None = None

    def template_context(self) -> dict[str, Any]:
        """JSON view of the scope used for template and condition lookups."""

        return self.to_json()

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def flag(self, name: str) -> bool:
        return self.state.get(name) == "true"

    def set_flag(self, name: str) -> None:
        self.state[name] = "true"

    def is_round_logged(self, round_number: int) -> bool:
        return any(entry.round == round_number for entry in self.rounds_log)

    def record_round(self, round_number: int) -> None:
        """Log the current round's steps, replacing an earlier entry for the same round."""

        entry = RoundLogEntry(round=round_number, steps=dict(self.steps))
        for idx, existing in enumerate(self.rounds_log):
            if existing.round == round_number:
                self.rounds_log[idx] = entry
                return
        self.rounds_log.append(entry)
