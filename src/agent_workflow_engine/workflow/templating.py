"""`{{dotted.path}}` template rendering against the template scope."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import Any

_EXPRESSION = re.compile(r"\{\{([\s\S]+?)\}\}")


def get_value_at_path(obj: Any, path: str) -> Any:
    """Resolve a dot-separated path inside nested mappings and lists.

    Mapping segments are looked up by key, list segments by integer index.
    Any missing link resolves to ``None``.
    """

    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, list):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def stringify(value: Any) -> str:
    """Text form of a resolved value, as embedded in templates and compared by conditions."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, indent=2, ensure_ascii=False)
    return str(value)


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Replace every ``{{expr}}`` with the value found at `expr` in `context`."""

    return _EXPRESSION.sub(
        lambda match: stringify(get_value_at_path(context, match.group(1).strip())),
        template,
    )
