"""Workflow definition models.

A definition is immutable configuration: roles, an optional bootstrap phase, a
round phase of ordered steps with transition rules, an optional final phase and
initial state templates. JSON documents use camelCase keys (`systemPrompt`,
`maxRounds`, `nextStep`, ...); Python code uses the snake_case attributes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

ComparableValue = str | int | float | bool


class _DefinitionModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class AlwaysCondition(_DefinitionModel):
    """Matches unconditionally. Written as the string ``"always"`` in JSON."""

    kind: Literal["always"] = "always"


class FieldCondition(_DefinitionModel):
    """Matches when every specified comparator passes for the value at `field`.

    A `field` starting with ``@`` is resolved against the whole template scope;
    otherwise it is resolved against the current step result.
    """

    kind: Literal["field"] = "field"
    field: str = Field(min_length=1)
    exists: bool | None = None
    equals: ComparableValue | None = None
    not_equals: ComparableValue | None = None
    includes: str | None = None
    case_sensitive: bool = True


Condition = Annotated[AlwaysCondition | FieldCondition, Field(discriminator="kind")]


class Transition(_DefinitionModel):
    condition: Condition
    outcome: str | None = None
    reason: str | None = None
    next_step: str | None = None
    state_updates: dict[str, str] = Field(default_factory=dict)

    @field_validator("condition", mode="before")
    @classmethod
    def _tag_condition(cls, value: Any) -> Any:
        if value == "always":
            return {"kind": "always"}
        if isinstance(value, dict) and "kind" not in value:
            return {**value, "kind": "field"}
        return value

    @field_serializer("condition")
    def _dump_condition(self, condition: AlwaysCondition | FieldCondition) -> Any:
        if isinstance(condition, AlwaysCondition):
            return "always"
        return condition.model_dump(by_alias=True, exclude={"kind"}, exclude_none=True)


class Step(_DefinitionModel):
    key: str = Field(min_length=1)
    role: str
    agent: str | None = None
    prompt: str | list[str]
    next: str | None = None
    transitions: list[Transition] = Field(default_factory=list)
    exits: list[Transition] = Field(default_factory=list)
    state_updates: dict[str, str] = Field(default_factory=dict)

    @property
    def prompt_sections(self) -> list[str]:
        return [self.prompt] if isinstance(self.prompt, str) else list(self.prompt)

    def jump_targets(self) -> list[str]:
        targets = [t.next_step for t in (*self.transitions, *self.exits) if t.next_step]
        if self.next:
            targets.append(self.next)
        return targets


class RoleDefinition(_DefinitionModel):
    system_prompt: str = ""
    model: str | None = None
    parser: str | None = None
    tools: dict[str, bool] = Field(default_factory=dict)


class Outcome(_DefinitionModel):
    outcome: str
    reason: str = ""


class RoundDefinition(_DefinitionModel):
    max_rounds: int = Field(default=10, ge=1)
    steps: list[Step] = Field(min_length=1)
    default_outcome: Outcome

    @model_validator(mode="after")
    def _check_steps(self) -> RoundDefinition:
        _require_unique_keys(self.steps, phase="round")
        keys = {step.key for step in self.steps}
        for step in self.steps:
            for target in step.jump_targets():
                if target not in keys:
                    raise ValueError(f"Step {step.key!r} references unknown step {target!r}")
        return self


class FlowDefinition(_DefinitionModel):
    bootstrap: list[Step] = Field(default_factory=list)
    round: RoundDefinition
    final: list[Step] = Field(default_factory=list)

    @field_validator("bootstrap", "final", mode="before")
    @classmethod
    def _as_step_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (dict, Step)):
            return [value]
        return value

    @model_validator(mode="after")
    def _check_phases(self) -> FlowDefinition:
        _require_unique_keys(self.bootstrap, phase="bootstrap")
        _require_unique_keys(self.final, phase="final")
        return self


class StateDefinition(_DefinitionModel):
    initial: dict[str, str] = Field(default_factory=dict)


class WorkflowDefinition(_DefinitionModel):
    """A validated workflow definition."""

    id: str = ""
    description: str = ""
    model: str | None = None
    roles: dict[str, RoleDefinition]
    flow: FlowDefinition
    state: StateDefinition = Field(default_factory=StateDefinition)
    user: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_roles(self) -> WorkflowDefinition:
        for step in (*self.flow.bootstrap, *self.flow.round.steps, *self.flow.final):
            if step.role not in self.roles:
                raise ValueError(f"Step {step.key!r} uses unknown role {step.role!r}")
        return self

    def find_round_step(self, key: str) -> Step | None:
        for step in self.flow.round.steps:
            if step.key == key:
                return step
        return None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _require_unique_keys(steps: list[Step], *, phase: str) -> None:
    seen: set[str] = set()
    for step in steps:
        if step.key in seen:
            raise ValueError(f"Duplicate step key {step.key!r} in {phase} phase")
        seen.add(step.key)


def load_definition(path: Path) -> WorkflowDefinition:
    """Load and validate a workflow definition from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the document is not valid JSON or not a
            valid definition.
    """

    return WorkflowDefinition.model_validate_json(Path(path).read_text(encoding="utf-8"))
