"""Agent Workflow Engine.

Drives multi-step, multi-round LLM workflows with:
- validated workflow definitions (roles, bootstrap, rounds, final)
- crash-safe resumption from a persisted JSON scope
- pluggable prompt executors (tool-calling, session polling, direct LLM)
"""

__version__ = "0.1.0"

from agent_workflow_engine.workflow.definition import WorkflowDefinition, load_definition
from agent_workflow_engine.workflow.engine import WorkflowEngine, WorkflowResult

__all__ = [
    "__version__",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowResult",
    "load_definition",
]
