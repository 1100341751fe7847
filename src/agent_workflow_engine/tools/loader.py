"""Populate a tool registry from importable tool modules.

A tool module is any importable module exposing
``register_tools(registry: ToolRegistry) -> None``.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable

from agent_workflow_engine.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def load_tool_modules(
    module_names: Iterable[str], registry: ToolRegistry | None = None
) -> ToolRegistry:
    """Import each module and let it register its tools.

    Raises:
        ValueError: If a module cannot be imported or has no ``register_tools``.
    """

    registry = registry if registry is not None else ToolRegistry()

    for name in module_names:
        try:
            module = importlib.import_module(name)
        except ImportError as e:
            raise ValueError(f"Cannot import tool module {name!r}: {e}") from e

        register = getattr(module, "register_tools", None)
        if not callable(register):
            raise ValueError(f"Tool module {name!r} has no register_tools(registry) function")

        before = len(registry.get_all_definitions())
        register(registry)
        logger.info(
            "Loaded tool module",
            extra={"module": name, "tools": len(registry.get_all_definitions()) - before},
        )

    return registry
