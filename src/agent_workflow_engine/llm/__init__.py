"""Direct LLM providers used by the LLM prompt executor."""

from agent_workflow_engine.llm.factory import LLMFactory
from agent_workflow_engine.llm.provider import LLMProvider

__all__ = [
    "LLMFactory",
    "LLMProvider",
]
