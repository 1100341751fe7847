"""Workflow definitions, the template scope and the engine that drives them."""

from agent_workflow_engine.workflow.definition import (
    FieldCondition,
    Outcome,
    RoleDefinition,
    Step,
    Transition,
    WorkflowDefinition,
    load_definition,
)
from agent_workflow_engine.workflow.engine import (
    CycleLimitExceededError,
    StepNotFoundError,
    WorkflowEngine,
    WorkflowError,
    WorkflowResult,
    parse_step_output,
)
from agent_workflow_engine.workflow.scope import StepResult, TemplateScope
from agent_workflow_engine.workflow.state_store import ScopeStore
from agent_workflow_engine.workflow.templating import render_template

__all__ = [
    "CycleLimitExceededError",
    "FieldCondition",
    "Outcome",
    "RoleDefinition",
    "ScopeStore",
    "Step",
    "StepNotFoundError",
    "StepResult",
    "TemplateScope",
    "Transition",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowResult",
    "load_definition",
    "parse_step_output",
    "render_template",
]
