"""CLI entrypoint for running and inspecting workflows."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from agent_workflow_engine import __version__
from agent_workflow_engine.config import WorkflowSettings
from agent_workflow_engine.executors.factory import build_executor
from agent_workflow_engine.logging import run_context
from agent_workflow_engine.tools.loader import load_tool_modules
from agent_workflow_engine.workflow.definition import WorkflowDefinition, load_definition
from agent_workflow_engine.workflow.engine import WorkflowEngine
from agent_workflow_engine.workflow.state_store import ScopeStore

logger = logging.getLogger(__name__)


def _parse_inputs(values: list[str] | None) -> dict[str, Any]:
    inputs: dict[str, Any] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Expected KEY=VALUE, got {item!r}")
        inputs[key] = value
    return inputs


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workflow-engine",
        description="Run multi-round LLM agent workflows from JSON definitions",
    )
    parser.add_argument(
        "--version", action="version", version=f"agent-workflow-engine {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run or resume a workflow")
    run.add_argument("definition", type=Path, help="Path to the workflow definition JSON")
    run.add_argument(
        "--input",
        dest="inputs",
        action="append",
        metavar="KEY=VALUE",
        help="User input exposed to templates as {{user.KEY}} (repeatable)",
    )
    run.add_argument(
        "--state",
        type=Path,
        default=None,
        help="State file to resume from and persist to (defaults to the state directory)",
    )
    run.add_argument("--run-id", default=None, help="Run identifier (defaults to a timestamp)")
    run.add_argument(
        "--executor",
        choices=["llm", "polling", "tools"],
        default=None,
        help="Prompt executor (defaults to WORKFLOW_EXECUTOR_KIND)",
    )
    run.add_argument(
        "--session",
        default=None,
        help="Backend session id (required for the polling and tools executors)",
    )
    run.add_argument(
        "--tool-module",
        dest="tool_modules",
        action="append",
        metavar="MODULE",
        help="Module providing register_tools(registry) for the tools executor "
        "(repeatable; defaults to WORKFLOW_EXECUTOR_TOOL_MODULES)",
    )

    validate = subparsers.add_parser("validate", help="Validate a workflow definition")
    validate.add_argument("definition", type=Path, help="Path to the workflow definition JSON")

    show_state = subparsers.add_parser("show-state", help="Print a persisted run scope")
    show_state.add_argument("path", type=Path, help="Path to the state file")

    return parser


def _load_definition_or_report(path: Path) -> WorkflowDefinition | None:
    try:
        return load_definition(path)
    except OSError as e:
        print(f"Cannot read workflow definition {path}: {e}", file=sys.stderr)
    except ValidationError as e:
        print(f"Invalid workflow definition {path}:", file=sys.stderr)
        print(e, file=sys.stderr)
    return None


def _run(args: argparse.Namespace, settings: WorkflowSettings) -> int:
    definition = _load_definition_or_report(args.definition)
    if definition is None:
        return 2

    try:
        inputs = _parse_inputs(args.inputs)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    run_id = args.run_id or inputs.get("runId") or f"req-{int(time.time() * 1000)}"
    inputs["runId"] = run_id
    state_path = args.state or settings.state_file_for(run_id)

    try:
        tool_registry = load_tool_modules(args.tool_modules) if args.tool_modules else None
        executor = build_executor(
            settings,
            kind=args.executor,
            session_id=args.session,
            model=definition.model,
            tool_registry=tool_registry,
        )
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    engine = WorkflowEngine(executor, default_agent=settings.default_agent)
    with run_context(run_id):
        result = engine.run(definition, inputs, state_path=state_path)

    logger.info(
        "Run state persisted",
        extra={"run_id": run_id, "path": str(state_path), "outcome": result.outcome},
    )
    print(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
    return 0


def _validate(args: argparse.Namespace) -> int:
    definition = _load_definition_or_report(args.definition)
    if definition is None:
        return 1

    round_steps = len(definition.flow.round.steps)
    print(
        f"OK: {definition.id or args.definition.stem} "
        f"({len(definition.roles)} roles, {len(definition.flow.bootstrap)} bootstrap, "
        f"{round_steps} round, {len(definition.flow.final)} final steps)"
    )
    return 0


def _show_state(args: argparse.Namespace) -> int:
    scope = ScopeStore(args.path).load()
    if scope is None:
        print(f"No usable state at {args.path}", file=sys.stderr)
        return 1
    print(json.dumps(scope.to_json(), indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    settings.setup_logging()

    try:
        if args.command == "run":
            return _run(args, settings)
        if args.command == "validate":
            return _validate(args)
        if args.command == "show-state":
            return _show_state(args)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
