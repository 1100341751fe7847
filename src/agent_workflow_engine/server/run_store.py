"""Persisted records of workflow runs started through the server.

Records live in a single JSON file next to the per-run scope files. A record
tracks the lifecycle of the background thread; the scope file holds the run's
actual progress. At most one record exists per run id: starting a run id
again replaces the finished record and resumes from the same scope file.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({"queued", "running"})
INTERRUPTED_ERROR = "interrupted"


class RunRecord(BaseModel):
    run_id: str
    workflow: str
    status: str
    created_at: str
    updated_at: str
    state_file: str

    outcome: str | None = None
    reason: str | None = None
    error: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class RunStore:
    """Lock-guarded JSON index of server runs, keyed by run id."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> dict[str, RunRecord]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logger.warning(
                "Run index is not valid JSON; ignoring it", extra={"path": str(self.path)}
            )
            return {}
        if not isinstance(raw, list):
            return {}
        records = (RunRecord.model_validate(item) for item in raw)
        return {r.run_id: r for r in records}

    def _write(self, runs: dict[str, RunRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in runs.values()]
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        tmp.replace(self.path)

    def list(self) -> list[RunRecord]:
        with self._lock:
            return list(self._read().values())

    def get(self, run_id: str) -> RunRecord | None:
        with self._lock:
            return self._read().get(run_id)

    def create_if_inactive(
        self, *, run_id: str, workflow: str, state_file: Path
    ) -> RunRecord | None:
        """Queue a run unless one with the same id is still queued or running.

        The lookup and the insert happen under a single lock acquisition, so of
        two concurrent requests for the same id exactly one gets a record.

        Returns:
            The new queued record, or None if the run id is active.
        """

        with self._lock:
            runs = self._read()
            existing = runs.get(run_id)
            if existing is not None and existing.is_active:
                return None

            now = _utc_iso_now()
            record = RunRecord(
                run_id=run_id,
                workflow=workflow,
                status="queued",
                created_at=now,
                updated_at=now,
                state_file=str(state_file),
            )
            # Re-inserting keeps the index ordered by most recent start.
            runs.pop(run_id, None)
            runs[run_id] = record
            self._write(runs)
            return record

    def update(self, run_id: str, **updates: object) -> RunRecord:
        with self._lock:
            runs = self._read()
            run = runs.get(run_id)
            if run is None:
                raise KeyError(run_id)
            merged = run.model_copy(update={"updated_at": _utc_iso_now(), **updates})
            runs[run_id] = merged
            self._write(runs)
            return merged

    def fail_interrupted(self) -> list[str]:
        """Mark runs left queued or running by a previous process as failed.

        No thread of this process can own such a run, so it is resumable again.

        Returns:
            The ids of the runs that were marked.
        """

        with self._lock:
            runs = self._read()
            stale = [run_id for run_id, r in runs.items() if r.is_active]
            if not stale:
                return []
            now = _utc_iso_now()
            for run_id in stale:
                runs[run_id] = runs[run_id].model_copy(
                    update={"status": "failed", "error": INTERRUPTED_ERROR, "updated_at": now}
                )
            self._write(runs)
            return stale
