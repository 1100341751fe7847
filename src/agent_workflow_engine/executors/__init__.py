"""Prompt executors: the seam between the workflow engine and a model."""

from agent_workflow_engine.executors.base import (
    BackendError,
    ExecutorError,
    MaxStepsExceededError,
    PromptExecutor,
    PromptSubmissionError,
    PromptTimeoutError,
)
from agent_workflow_engine.executors.llm import LLMPromptExecutor
from agent_workflow_engine.executors.polling import PollingExecutor
from agent_workflow_engine.executors.tool_calling import MAX_STEPS, ToolCallingExecutor

__all__ = [
    "MAX_STEPS",
    "BackendError",
    "ExecutorError",
    "LLMPromptExecutor",
    "MaxStepsExceededError",
    "PollingExecutor",
    "PromptExecutor",
    "PromptSubmissionError",
    "PromptTimeoutError",
    "ToolCallingExecutor",
]
