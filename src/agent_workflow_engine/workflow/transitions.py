"""Transition resolution: the first transition whose condition matches wins."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from agent_workflow_engine.workflow.definition import (
    AlwaysCondition,
    Condition,
    FieldCondition,
    Transition,
)
from agent_workflow_engine.workflow.templating import get_value_at_path, stringify

SCOPE_PREFIX = "@"


def resolve_field(
    field: str, context: Mapping[str, Any], step_result: Mapping[str, Any] | None
) -> Any:
    if field.startswith(SCOPE_PREFIX):
        return get_value_at_path(context, field[len(SCOPE_PREFIX) :])
    return get_value_at_path(step_result, field)


def _field_matches(
    condition: FieldCondition,
    context: Mapping[str, Any],
    step_result: Mapping[str, Any] | None,
) -> bool:
    value = resolve_field(condition.field, context, step_result)

    def norm(v: Any) -> str:
        text = stringify(v)
        return text if condition.case_sensitive else text.casefold()

    if condition.exists is not None:
        exists = value is not None and value != ""
        if condition.exists != exists:
            return False
    if condition.equals is not None and norm(value) != norm(condition.equals):
        return False
    if condition.not_equals is not None and norm(value) == norm(condition.not_equals):
        return False
    if condition.includes is not None and norm(condition.includes) not in norm(value):
        return False
    return True


def matches_condition(
    condition: Condition,
    context: Mapping[str, Any],
    step_result: Mapping[str, Any] | None,
) -> bool:
    if isinstance(condition, AlwaysCondition):
        return True
    return _field_matches(condition, context, step_result)


def resolve_transition(
    transitions: Sequence[Transition],
    context: Mapping[str, Any],
    step_result: Mapping[str, Any] | None,
) -> Transition | None:
    for transition in transitions:
        if matches_condition(transition.condition, context, step_result):
            return transition
    return None
