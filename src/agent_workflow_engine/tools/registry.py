"""Registry of tools that the tool-calling executor may invoke.

The registry is an ordinary object passed to whoever needs it; there is no
process-wide instance.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ToolImplementation = Callable[[dict[str, Any]], Any]
PreExecuteHook = Callable[[str, Mapping[str, Any]], None]
PostExecuteHook = Callable[[str, Mapping[str, Any], Any], None]


class ToolDefinition(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the tool arguments",
    )

    def to_function_spec(self) -> dict[str, object]:
        """Function-calling shape understood by chat completion backends."""

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolNotFoundError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name


class ToolRegistry:
    """Named tool definitions plus their implementations."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._implementations: dict[str, ToolImplementation] = {}
        self._pre_hooks: list[PreExecuteHook] = []
        self._post_hooks: list[PostExecuteHook] = []

    def register_tool(self, definition: ToolDefinition, impl: ToolImplementation) -> None:
        if definition.name in self._tools:
            logger.warning("Overwriting tool", extra={"tool": definition.name})
        self._tools[definition.name] = definition
        self._implementations[definition.name] = impl

    def get_tool_definition(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def get_all_definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def add_pre_execute_hook(self, hook: PreExecuteHook) -> None:
        """Run `hook(name, args)` before each tool; raising aborts the call."""

        self._pre_hooks.append(hook)

    def add_post_execute_hook(self, hook: PostExecuteHook) -> None:
        """Run `hook(name, args, result)` after each successful tool call."""

        self._post_hooks.append(hook)

    def execute_tool(self, name: str, args: dict[str, Any]) -> Any:
        """Execute a registered tool.

        Raises:
            ToolNotFoundError: If no tool is registered under `name`.
            Exception: Whatever a hook or the tool itself raises.
        """

        impl = self._implementations.get(name)
        if impl is None:
            raise ToolNotFoundError(name)

        for pre in self._pre_hooks:
            pre(name, args)

        result = impl(args)

        for post in self._post_hooks:
            post(name, args, result)

        return result
