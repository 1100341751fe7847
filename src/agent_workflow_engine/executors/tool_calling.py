"""Prompt executor that lets the model call registered tools before answering."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from agent_workflow_engine.backend.models import SessionBackend
from agent_workflow_engine.executors.base import BackendError, MaxStepsExceededError
from agent_workflow_engine.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

MAX_STEPS = 10


class ToolCallingExecutor:
    """Bounded request/tool-result loop on top of a session backend.

    Each turn sends a single part: the prompt text on the first turn, then the
    result of the previously requested tool. Only the first tool call of a
    response is executed; tools run strictly one at a time. A role's `tools`
    map switches individual registry tools off (`false`); unlisted tools stay on.
    """

    def __init__(
        self,
        backend: SessionBackend,
        tool_registry: ToolRegistry,
        session_id: str,
        *,
        max_steps: int = MAX_STEPS,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        self._backend = backend
        self._tools = tool_registry
        self._session_id = session_id
        self._max_steps = max_steps

    @property
    def tool_registry(self) -> ToolRegistry:
        return self._tools

    def execute(
        self, agent_name: str, prompt: str, *, tools: Mapping[str, bool] | None = None
    ) -> str:
        current = prompt
        previous_call_id: str | None = None
        disabled = {name for name, enabled in (tools or {}).items() if not enabled}
        tool_specs = [
            t.to_function_spec()
            for t in self._tools.get_all_definitions()
            if t.name not in disabled
        ]

        for step in range(self._max_steps):
            if previous_call_id is not None:
                parts: list[dict[str, object]] = [
                    {
                        "type": "tool_result",
                        "toolResult": {"id": previous_call_id, "result": current},
                    }
                ]
                previous_call_id = None
            else:
                parts = [{"type": "text", "text": current}]

            response = self._backend.prompt(
                self._session_id,
                parts,
                agent=agent_name,
                skip_agent_run=True,
                tools=tool_specs or None,
            )
            if response.error:
                raise BackendError(f"LLM Error: {response.error}")

            message = response.data
            if message is None:
                return ""

            calls = message.tool_calls
            if calls:
                call = calls[0]
                logger.info(
                    "Executing tool call",
                    extra={"tool": call.name, "agent": agent_name, "turn": step + 1},
                )
                current = self._run_tool(call.name, call.arguments, disabled)
                previous_call_id = call.id
                continue

            if message.has_text:
                return message.text

            return ""

        raise MaxStepsExceededError(self._max_steps)

    def _run_tool(self, name: str, arguments: str, disabled: set[str]) -> str:
        """Run one tool call; failures become a result text for the model."""

        if name in disabled:
            logger.warning("Model called a disabled tool", extra={"tool": name})
            return f"Error executing tool {name}: tool is disabled for this role"

        try:
            args = json.loads(arguments) if arguments.strip() else {}
            output = self._tools.execute_tool(name, args)
        except Exception as e:
            logger.warning("Tool call failed", extra={"tool": name, "error": str(e)})
            return f"Error executing tool {name}: {e}"
        return json.dumps(output, default=str)
