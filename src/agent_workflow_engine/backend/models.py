"""Typed views over the session backend's JSON payloads.

The backend has been observed to nest some fields differently between
versions (``info.role`` vs ``info.author.role``; ``info.id`` vs ``id``), so
every `from_json` accepts both shapes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol


def _dict(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _str(value: object) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class ModelRef:
    provider_id: str
    model_id: str

    @staticmethod
    def parse(value: str) -> ModelRef:
        """Parse ``provider/model`` (the model part may itself contain slashes)."""

        provider, sep, model = value.partition("/")
        if not sep or not provider or not model:
            raise ValueError(f"Model must be in the form 'provider/model', got {value!r}")
        return ModelRef(provider_id=provider, model_id=model)

    def to_json(self) -> dict[str, str]:
        return {"providerID": self.provider_id, "modelID": self.model_id}


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    name: str
    arguments: str

    @staticmethod
    def from_json(obj: dict[str, object]) -> ToolCall:
        args = obj.get("arguments")
        if not isinstance(args, str):
            args = json.dumps(args if args is not None else {})
        return ToolCall(
            id=_str(obj.get("id")) or "",
            name=_str(obj.get("name")) or "",
            arguments=args,
        )


@dataclass(frozen=True, slots=True)
class MessagePart:
    type: str
    text: str | None = None
    tool_call: ToolCall | None = None

    @staticmethod
    def from_json(obj: dict[str, object]) -> MessagePart:
        raw_call = obj.get("toolCall")
        return MessagePart(
            type=_str(obj.get("type")) or "",
            text=_str(obj.get("text")),
            tool_call=ToolCall.from_json(raw_call) if isinstance(raw_call, dict) else None,
        )


@dataclass(frozen=True, slots=True)
class SessionMessage:
    id: str
    role: str | None
    created: float
    parts: list[MessagePart] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(p.text or "" for p in self.parts if p.type == "text")

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [p.tool_call for p in self.parts if p.type == "tool_call" and p.tool_call is not None]

    @property
    def has_text(self) -> bool:
        return any(p.type == "text" for p in self.parts)

    @staticmethod
    def from_json(obj: dict[str, object]) -> SessionMessage:
        info = _dict(obj.get("info"))
        created = _dict(info.get("time")).get("created")
        raw_parts = obj.get("parts")
        parts: list[MessagePart] = []
        if isinstance(raw_parts, list):
            parts = [MessagePart.from_json(p) for p in raw_parts if isinstance(p, dict)]
        return SessionMessage(
            id=_str(info.get("id")) or _str(obj.get("id")) or "",
            role=_str(info.get("role")) or _str(_dict(info.get("author")).get("role")),
            created=float(created) if isinstance(created, (int, float)) else 0.0,
            parts=parts,
        )


@dataclass(frozen=True, slots=True)
class PromptResponse:
    """Result of a prompt submission: either the created message or an error."""

    data: SessionMessage | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class SessionStatus:
    type: str

    @property
    def busy(self) -> bool:
        return self.type == "busy"

    @staticmethod
    def from_json(obj: object) -> SessionStatus:
        return SessionStatus(type=_str(_dict(obj).get("type")) or "idle")


class SessionBackend(Protocol):
    """A stateful LLM session service whose history is an ordered list of messages."""

    def prompt(
        self,
        session_id: str,
        parts: list[dict[str, object]],
        *,
        agent: str,
        model: ModelRef | None = None,
        skip_agent_run: bool = False,
        tools: list[dict[str, object]] | None = None,
    ) -> PromptResponse: ...

    def messages(self, session_id: str, *, limit: int) -> list[SessionMessage]: ...

    def status(self, session_id: str) -> dict[str, SessionStatus]: ...
