#!/usr/bin/env python3
"""Programmatic workflow run example.

This demonstrates using the engine components directly:

* load settings from `.env`
* load and validate a workflow definition
* run it with the OpenAI-backed executor, persisting the scope so that a
  second invocation with the same run id resumes instead of starting over
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from agent_workflow_engine.config import WorkflowSettings
from agent_workflow_engine.executors.llm import LLMPromptExecutor
from agent_workflow_engine.llm.factory import LLMFactory
from agent_workflow_engine.workflow.definition import load_definition
from agent_workflow_engine.workflow.engine import WorkflowEngine


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a workflow (programmatic example).")
    parser.add_argument("definition", type=Path, help="Path to a workflow definition JSON")
    parser.add_argument("--task", required=True, help="Exposed to templates as {{user.task}}")
    parser.add_argument("--run-id", default="example", help="Run identifier")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = WorkflowSettings()
    settings.setup_logging()

    definition = load_definition(args.definition)
    executor = LLMPromptExecutor(LLMFactory.create(settings.llm, model=definition.model))
    engine = WorkflowEngine(executor, default_agent=settings.default_agent)

    state_file = settings.state_file_for(args.run_id)
    result = engine.run(
        definition,
        {"task": args.task, "runId": args.run_id},
        state_path=state_file,
    )

    print(f"Outcome: {result.outcome}")
    print(f"Reason: {result.reason}")
    print(f"Rounds: {len(result.rounds)}")
    print(f"State persisted to: {state_file}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
