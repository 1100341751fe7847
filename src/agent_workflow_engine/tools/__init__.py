"""Tool registry consumed by the tool-calling executor."""

from agent_workflow_engine.tools.loader import load_tool_modules
from agent_workflow_engine.tools.registry import ToolDefinition, ToolNotFoundError, ToolRegistry

__all__ = [
    "ToolDefinition",
    "ToolNotFoundError",
    "ToolRegistry",
    "load_tool_modules",
]
