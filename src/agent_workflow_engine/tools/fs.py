"""Filesystem tools: read, write and list files on the local machine."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from agent_workflow_engine.tools.registry import ToolDefinition, ToolRegistry

_PATH_PARAMETER = {"type": "string", "description": "Path of the file or directory"}


def fs_read_file(args: dict[str, Any]) -> str:
    return Path(args["path"]).read_text(encoding="utf-8")


def fs_write_file(args: dict[str, Any]) -> str:
    path = Path(args["path"])
    path.write_text(args["content"], encoding="utf-8")
    return f"Successfully wrote to {path}"


def fs_list_dir(args: dict[str, Any]) -> str:
    return "\n".join(sorted(p.name for p in Path(args["path"]).iterdir()))


def register_tools(registry: ToolRegistry) -> None:
    registry.register_tool(
        ToolDefinition(
            name="fs_read_file",
            description="Read a UTF-8 text file and return its contents",
            parameters={
                "type": "object",
                "properties": {"path": _PATH_PARAMETER},
                "required": ["path"],
            },
        ),
        fs_read_file,
    )
    registry.register_tool(
        ToolDefinition(
            name="fs_write_file",
            description="Write text to a file, replacing its contents",
            parameters={
                "type": "object",
                "properties": {
                    "path": _PATH_PARAMETER,
                    "content": {"type": "string", "description": "Text to write"},
                },
                "required": ["path", "content"],
            },
        ),
        fs_write_file,
    )
    registry.register_tool(
        ToolDefinition(
            name="fs_list_dir",
            description="List the entries of a directory, one name per line",
            parameters={
                "type": "object",
                "properties": {"path": _PATH_PARAMETER},
                "required": ["path"],
            },
        ),
        fs_list_dir,
    )
