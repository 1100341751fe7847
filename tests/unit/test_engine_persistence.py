"""Unit tests for crash-safe resumption of workflow runs."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from agent_workflow_engine.workflow.engine import StepNotFoundError, WorkflowEngine
from agent_workflow_engine.workflow.scope import (
    BOOTSTRAP_COMPLETE,
    FINAL_COMPLETE,
    RoundLogEntry,
    RunInfo,
    StepResult,
    TemplateScope,
)
from agent_workflow_engine.workflow.state_store import ScopeStore


class Crash(Exception):
    pass


def _single_step_definition(definition_factory, *, max_rounds: int = 3, bootstrap=None):
    flow = {
        "round": {
            "maxRounds": max_rounds,
            "steps": [{"key": "a", "role": "worker", "prompt": "round {{round}}"}],
            "defaultOutcome": {"outcome": "exhausted"},
        }
    }
    if bootstrap is not None:
        flow["bootstrap"] = bootstrap
    return definition_factory(flow=flow)


def test_state_file_exists_before_first_step(worker_verifier, scripted, tmp_path: Path) -> None:
    state_file = tmp_path / "runs" / "r1.json"

    def crash(_agent: str, _prompt: str) -> str:
        raise Crash()

    with pytest.raises(Crash):
        WorkflowEngine(scripted(crash)).run(worker_verifier, {"runId": "r1"}, state_path=state_file)

    saved = json.loads(state_file.read_text(encoding="utf-8"))
    assert saved["run"] == {"id": "r1"}
    assert saved["currentStepKey"] == "worker"
    assert saved["steps"] == {}


def test_resume_reexecutes_only_the_interrupted_step(
    worker_verifier, scripted, tmp_path: Path
) -> None:
    state_file = tmp_path / "state.json"

    def first_attempt(_agent: str, prompt: str) -> str:
        if prompt.startswith("Do:"):
            return '{"work":"done"}'
        raise Crash()

    first = scripted(first_attempt)
    with pytest.raises(Crash):
        WorkflowEngine(first).run(worker_verifier, {"task": "t"}, state_path=state_file)
    assert len(first.calls) == 2

    second = scripted(['{"verdict":"approve"}'])
    result = WorkflowEngine(second).run(worker_verifier, {"task": "t"}, state_path=state_file)

    assert result.outcome == "approved"
    assert second.calls == [("build", 'Check: {"work":"done"}')]
    assert set(result.rounds[0].steps) == {"worker", "verifier"}


def test_corrupt_state_file_starts_fresh(worker_verifier, scripted, tmp_path: Path) -> None:
    state_file = tmp_path / "state.json"
    state_file.write_text("{ definitely not json", encoding="utf-8")

    executor = scripted(['{"work":"done"}', '{"verdict":"approve"}'])
    result = WorkflowEngine(executor).run(worker_verifier, state_path=state_file)

    assert result.outcome == "approved"
    assert len(executor.calls) == 2
    assert ScopeStore(state_file).load() is not None


def test_bootstrap_is_not_rerun_on_resume(definition_factory, scripted, tmp_path: Path) -> None:
    definition = _single_step_definition(
        definition_factory,
        max_rounds=1,
        bootstrap={"key": "setup", "role": "worker", "prompt": "bootstrap"},
    )
    state_file = tmp_path / "state.json"

    def crash_in_round(_agent: str, prompt: str) -> str:
        if prompt == "bootstrap":
            return "ready"
        raise Crash()

    with pytest.raises(Crash):
        WorkflowEngine(scripted(crash_in_round)).run(definition, state_path=state_file)

    scope = ScopeStore(state_file).load()
    assert scope is not None
    assert scope.state[BOOTSTRAP_COMPLETE] == "true"

    resumed = scripted(["round work"])
    result = WorkflowEngine(resumed).run(definition, state_path=state_file)

    assert [prompt for _, prompt in resumed.calls] == ["round 1"]
    assert result.bootstrap is not None
    assert result.bootstrap["setup"].raw == "ready"


def test_completed_round_is_not_rerun(definition_factory, scripted, tmp_path: Path) -> None:
    definition = _single_step_definition(definition_factory, max_rounds=3)
    state_file = tmp_path / "state.json"
    done = StepResult(key="a", role="worker", raw="r1", parsed="r1")
    ScopeStore(state_file).save(
        TemplateScope(
            run=RunInfo(id="r"),
            round=1,
            max_rounds=3,
            current=done,
            rounds_log=[RoundLogEntry(round=1, steps={"a": done})],
        )
    )

    executor = scripted(lambda _agent, _prompt: "again")
    result = WorkflowEngine(executor).run(definition, state_path=state_file)

    assert [prompt for _, prompt in executor.calls] == ["round 2", "round 3"]
    assert [entry.round for entry in result.rounds] == [1, 2, 3]
    assert result.outcome == "exhausted"


def test_finished_run_is_not_rerun(worker_verifier, scripted, tmp_path: Path) -> None:
    state_file = tmp_path / "state.json"
    WorkflowEngine(scripted(['{"work":"done"}', '{"verdict":"approve"}'])).run(
        worker_verifier, state_path=state_file
    )

    again = scripted([])
    result = WorkflowEngine(again).run(worker_verifier, state_path=state_file)

    assert result.outcome == "approved"
    assert again.calls == []


def test_unknown_persisted_step_key_is_fatal(worker_verifier, scripted, tmp_path: Path) -> None:
    state_file = tmp_path / "state.json"
    ScopeStore(state_file).save(
        TemplateScope(run=RunInfo(id="r"), round=1, max_rounds=3, current_step_key="ghost")
    )

    with pytest.raises(StepNotFoundError, match="Step ghost not found"):
        WorkflowEngine(scripted([])).run(worker_verifier, state_path=state_file)


def test_persistence_failure_does_not_stop_the_run(
    worker_verifier, scripted, tmp_path: Path, monkeypatch, caplog
) -> None:
    def refuse(self: Path, target: Path) -> Path:
        raise OSError("disk full")

    monkeypatch.setattr(Path, "replace", refuse)
    executor = scripted(['{"work":"done"}', '{"verdict":"approve"}'])

    with caplog.at_level(logging.ERROR, logger="agent_workflow_engine.workflow.state_store"):
        result = WorkflowEngine(executor).run(worker_verifier, state_path=tmp_path / "s.json")

    assert result.outcome == "approved"
    assert not (tmp_path / "s.json").exists()
    assert any("Failed to persist" in r.getMessage() for r in caplog.records)


def _done_with_final(definition_factory):
    return definition_factory(
        flow={
            "round": {
                "maxRounds": 2,
                "steps": [
                    {
                        "key": "work",
                        "role": "worker",
                        "prompt": "work",
                        "exits": [{"condition": "always", "outcome": "done"}],
                    }
                ],
                "defaultOutcome": {"outcome": "exhausted"},
            },
            "final": [
                {"key": "f1", "role": "worker", "prompt": "final 1"},
                {"key": "f2", "role": "worker", "prompt": "final 2"},
            ],
        }
    )


def test_completed_final_is_not_rerun(definition_factory, scripted, tmp_path: Path) -> None:
    definition = _done_with_final(definition_factory)
    state_file = tmp_path / "state.json"
    WorkflowEngine(scripted(["worked", "one", "two"])).run(definition, state_path=state_file)

    scope = ScopeStore(state_file).load()
    assert scope is not None
    assert scope.state[FINAL_COMPLETE] == "true"
    assert scope.outcome is not None and scope.outcome.outcome == "done"

    again = scripted([])
    result = WorkflowEngine(again).run(definition, state_path=state_file)

    assert again.calls == []
    assert result.outcome == "done"
    assert result.final is not None
    assert result.final["f2"].raw == "two"


def test_interrupted_final_restarts_from_its_first_step(
    definition_factory, scripted, tmp_path: Path
) -> None:
    definition = _done_with_final(definition_factory)
    state_file = tmp_path / "state.json"

    def crash_in_final_two(_agent: str, prompt: str) -> str:
        if prompt == "final 2":
            raise Crash()
        return "ok"

    with pytest.raises(Crash):
        WorkflowEngine(scripted(crash_in_final_two)).run(definition, state_path=state_file)

    scope = ScopeStore(state_file).load()
    assert scope is not None
    assert FINAL_COMPLETE not in scope.state

    resumed = scripted(["one again", "two"])
    result = WorkflowEngine(resumed).run(definition, state_path=state_file)

    assert [prompt for _, prompt in resumed.calls] == ["final 1", "final 2"]
    assert result.final is not None
    assert result.final["f1"].raw == "one again"


def test_interrupted_bootstrap_restarts_from_its_first_step(
    definition_factory, scripted, tmp_path: Path
) -> None:
    definition = _single_step_definition(
        definition_factory,
        max_rounds=1,
        bootstrap=[
            {"key": "setup", "role": "worker", "prompt": "bootstrap 1"},
            {"key": "plan", "role": "worker", "prompt": "bootstrap 2"},
        ],
    )
    state_file = tmp_path / "state.json"

    def crash_in_second_step(_agent: str, prompt: str) -> str:
        if prompt == "bootstrap 2":
            raise Crash()
        return "ready"

    with pytest.raises(Crash):
        WorkflowEngine(scripted(crash_in_second_step)).run(definition, state_path=state_file)

    scope = ScopeStore(state_file).load()
    assert scope is not None
    assert BOOTSTRAP_COMPLETE not in scope.state
    assert scope.bootstrap is not None and set(scope.bootstrap) == {"setup"}

    resumed = scripted(["ready again", "planned", "round work"])
    result = WorkflowEngine(resumed).run(definition, state_path=state_file)

    assert [prompt for _, prompt in resumed.calls] == ["bootstrap 1", "bootstrap 2", "round 1"]
    assert result.bootstrap is not None
    assert result.bootstrap["setup"].raw == "ready again"
