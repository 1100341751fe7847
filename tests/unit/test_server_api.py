"""Unit tests for the REST server."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

import agent_workflow_engine.server.app as server_app
from agent_workflow_engine.server.app import create_app
from agent_workflow_engine.server.config import ServerSettings
from agent_workflow_engine.server.run_store import RunStore
from agent_workflow_engine.tools.registry import ToolDefinition, ToolRegistry


def _wait_for_run(client: TestClient, run_id: str, timeout: float = 5.0) -> dict[str, Any]:
    deadline = time.monotonic() + timeout
    while True:
        run = client.get(f"/api/runs/{run_id}").json()
        if run["status"] in {"succeeded", "failed"}:
            return run
        if time.monotonic() > deadline:
            raise AssertionError(f"Run {run_id} still {run['status']}")
        time.sleep(0.02)


@pytest.fixture
def server_settings(tmp_path: Path) -> ServerSettings:
    return ServerSettings(workflows_path=tmp_path / "workflows", state_path=tmp_path / "state")


@pytest.fixture
def stored_workflow(server_settings: ServerSettings, worker_verifier) -> str:
    path = server_settings.workflows_path / "review.json"
    path.parent.mkdir(parents=True)
    path.write_text(worker_verifier.model_dump_json(by_alias=True), encoding="utf-8")
    return "review"


def test_health(server_settings: ServerSettings) -> None:
    client = TestClient(create_app(server_settings))

    assert client.get("/api/health").json() == {"status": "ok"}


def test_list_and_get_workflows(server_settings: ServerSettings, stored_workflow: str) -> None:
    (server_settings.workflows_path / "broken.json").write_text("{", encoding="utf-8")
    client = TestClient(create_app(server_settings))

    listed = client.get("/api/workflows").json()
    assert [w["name"] for w in listed] == ["review"]
    assert listed[0]["maxRounds"] == 3
    assert listed[0]["roles"] == ["verifier", "worker"]

    detail = client.get(f"/api/workflows/{stored_workflow}").json()
    assert detail["flow"]["round"]["steps"][0]["key"] == "worker"

    assert client.get("/api/workflows/absent").status_code == 404
    assert client.get("/api/workflows/broken").status_code == 409


def test_put_workflow_validates_and_saves(server_settings: ServerSettings, worker_verifier) -> None:
    client = TestClient(create_app(server_settings))

    bad = client.put("/api/workflows/new", json={"roles": {}})
    assert bad.status_code == 422

    good = client.put("/api/workflows/new", json=worker_verifier.to_json())
    assert good.status_code == 200
    assert (server_settings.workflows_path / "new.json").exists()
    assert client.get("/api/workflows/new").json()["id"] == "worker-verifier"


def test_invalid_workflow_name_is_rejected(server_settings: ServerSettings) -> None:
    client = TestClient(create_app(server_settings))

    assert client.get("/api/workflows/.hidden").status_code == 400


def test_run_workflow_in_background(
    server_settings: ServerSettings, stored_workflow: str, scripted
) -> None:
    executor = scripted(['{"work":"done"}', '{"verdict":"approve"}'])
    requests_seen: list[Any] = []

    def factory(definition, req):
        requests_seen.append(req)
        return executor

    client = TestClient(create_app(server_settings, executor_factory=factory))

    started = client.post(
        f"/api/workflows/{stored_workflow}/runs",
        json={"inputs": {"task": "docs"}, "runId": "run-1", "sessionId": "s1"},
    )
    assert started.status_code == 202
    assert started.json()["runId"] == "run-1"

    run = _wait_for_run(client, "run-1")
    assert run["status"] == "succeeded"
    assert run["outcome"] == "approved"
    assert run["reason"] == "approved"
    assert requests_seen[0].session_id == "s1"
    assert executor.calls[0][1] == "Do: docs"

    state = client.get("/api/runs/run-1/state").json()
    assert state["run"]["id"] == "run-1"
    assert [entry["round"] for entry in state["roundsLog"]] == [1]

    assert [r["runId"] for r in client.get("/api/runs").json()] == ["run-1"]


def test_failed_run_reports_error(
    server_settings: ServerSettings, stored_workflow: str, scripted
) -> None:
    def boom(_agent: str, _prompt: str) -> str:
        raise RuntimeError("backend down")

    client = TestClient(
        create_app(server_settings, executor_factory=lambda definition, req: scripted(boom))
    )

    client.post(f"/api/workflows/{stored_workflow}/runs", json={"runId": "run-2"})
    run = _wait_for_run(client, "run-2")

    assert run["status"] == "failed"
    assert run["error"] == "backend down"


def test_unknown_run(server_settings: ServerSettings) -> None:
    client = TestClient(create_app(server_settings))

    assert client.get("/api/runs/nope").status_code == 404
    assert client.get("/api/runs/nope/state").status_code == 404


def test_second_start_of_an_active_run_conflicts(
    server_settings: ServerSettings, stored_workflow: str, scripted
) -> None:
    release = threading.Event()

    def blocking(_agent: str, prompt: str) -> str:
        release.wait(timeout=5)
        return '{"verdict":"approve"}' if prompt.startswith("Check") else "work"

    client = TestClient(
        create_app(server_settings, executor_factory=lambda definition, req: scripted(blocking))
    )
    url = f"/api/workflows/{stored_workflow}/runs"

    assert client.post(url, json={"runId": "busy"}).status_code == 202
    conflict = client.post(url, json={"runId": "busy"})
    assert conflict.status_code == 409

    release.set()
    assert _wait_for_run(client, "busy")["status"] == "succeeded"
    assert client.post(url, json={"runId": "busy"}).status_code == 202
    assert _wait_for_run(client, "busy")["outcome"] == "approved"


def test_runs_left_active_by_a_previous_process_can_resume(
    server_settings: ServerSettings, stored_workflow: str, scripted
) -> None:
    previous = RunStore(server_settings.runs_index_file)
    previous.create_if_inactive(
        run_id="r1", workflow=stored_workflow, state_file=server_settings.state_file_for("r1")
    )
    previous.update("r1", status="running")

    executor = scripted(['{"work":"done"}', '{"verdict":"approve"}'])
    client = TestClient(
        create_app(server_settings, executor_factory=lambda definition, req: executor)
    )

    stale = client.get("/api/runs/r1").json()
    assert stale["status"] == "failed"
    assert stale["error"] == "interrupted"

    resumed = client.post(f"/api/workflows/{stored_workflow}/runs", json={"runId": "r1"})
    assert resumed.status_code == 202
    assert _wait_for_run(client, "r1")["status"] == "succeeded"


def test_default_executor_factory_uses_the_app_tool_registry(
    server_settings: ServerSettings, stored_workflow: str, scripted, monkeypatch
) -> None:
    registry = ToolRegistry()
    registry.register_tool(ToolDefinition(name="lookup"), lambda args: "found")
    seen: dict[str, Any] = {}

    def fake_build_executor(settings, **kwargs):
        seen.update(kwargs)
        return scripted(['{"work":"done"}', '{"verdict":"approve"}'])

    monkeypatch.setattr(server_app, "build_executor", fake_build_executor)
    client = TestClient(create_app(server_settings, tool_registry=registry))

    client.post(
        f"/api/workflows/{stored_workflow}/runs",
        json={"runId": "with-tools", "executor": "tools", "sessionId": "s9"},
    )

    assert _wait_for_run(client, "with-tools")["status"] == "succeeded"
    assert seen["tool_registry"] is registry
    assert seen["kind"] == "tools"
    assert seen["session_id"] == "s9"
