"""Session backend: typed message models and the HTTP client."""

from agent_workflow_engine.backend.client import OpencodeClient
from agent_workflow_engine.backend.models import (
    MessagePart,
    ModelRef,
    PromptResponse,
    SessionBackend,
    SessionMessage,
    SessionStatus,
    ToolCall,
)

__all__ = [
    "MessagePart",
    "ModelRef",
    "OpencodeClient",
    "PromptResponse",
    "SessionBackend",
    "SessionMessage",
    "SessionStatus",
    "ToolCall",
]
