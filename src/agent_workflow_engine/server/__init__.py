"""FastAPI server adapter for the workflow engine.

Design intent:
- Keep workflow semantics in `agent_workflow_engine.workflow.*`
- Keep server-specific concerns (routing, CORS, run tracking) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from agent_workflow_engine.server.app import create_app
