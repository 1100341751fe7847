"""Persist the template scope of a run as a JSON file.

Every save is a whole-file overwrite so that a resumed run sees exactly the
last successfully written snapshot.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from agent_workflow_engine.workflow.scope import TemplateScope

logger = logging.getLogger(__name__)


class ScopeStore:
    """JSON-file backed store for one run's scope."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> TemplateScope | None:
        """Return the persisted scope, or None when there is nothing usable to resume."""

        try:
            text = self._path.read_text(encoding="utf-8")
            raw = json.loads(text)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(
                "Scope file is not valid JSON; starting fresh", extra={"path": str(self._path)}
            )
            return None

        if not isinstance(raw, dict):
            logger.warning(
                "Scope file has unexpected shape; starting fresh", extra={"path": str(self._path)}
            )
            return None

        try:
            return TemplateScope.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Scope file failed validation; starting fresh",
                extra={"path": str(self._path), "errors": e.error_count()},
            )
            return None

    def save(self, scope: TemplateScope) -> bool:
        """Write the scope. Failures are logged, never raised.

        Returns:
            True if the snapshot was written.
        """

        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                json.dumps(scope.to_json(), indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
            tmp.replace(self._path)
        except OSError:
            logger.exception("Failed to persist workflow scope", extra={"path": str(self._path)})
            return False
        return True
