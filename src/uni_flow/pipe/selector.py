"""Path selection over parsed JSON values.

Supported path syntax: ``foo.bar``, ``items[0]`` and ``items[*]``. A wildcard
fans out over every element of the current array, and nested wildcards are
flattened, so ``events[*].attendees[*].email`` returns one flat list of emails.
"""

from __future__ import annotations

import re
from typing import Any

_PATH_SEPARATORS = re.compile(r"[.\[\]]")
_WILDCARD = "[*]"


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


MISSING: Any = _Missing()


def get_by_path(data: Any, path: str, default: Any = None) -> Any:
    """Resolve a single path; ``default`` when any segment is absent."""

    value = _resolve(data, path)
    return default if value is MISSING else value


def select_path(data: Any, path: str | None) -> list[Any]:
    """Extract an ordered item list from ``data``."""

    if not path or path == ".":
        return list(data) if isinstance(data, list) else [data]

    results: list[Any] = list(data) if isinstance(data, list) else [data]
    segments = path.split(_WILDCARD)
    for position, segment in enumerate(segments):
        sub_path = segment.strip(".")
        if sub_path:
            resolved = (_resolve(item, sub_path) for item in results)
            results = [value for value in resolved if value is not MISSING]
        if position < len(segments) - 1:
            results = _flatten_once(results)

    return _flatten_once(results)


def _resolve(data: Any, path: str) -> Any:
    if not path or path == ".":
        return data

    current = data
    for part in (segment for segment in _PATH_SEPARATORS.split(path) if segment):
        if current is None or current is MISSING:
            return MISSING
        if part == "*":
            return current if isinstance(current, list) else MISSING
        if part.isascii() and part.isdigit():
            if not isinstance(current, list):
                return MISSING
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        elif isinstance(current, dict):
            if part not in current:
                return MISSING
            current = current[part]
        else:
            return MISSING
    return current


def _flatten_once(values: list[Any]) -> list[Any]:
    flattened: list[Any] = []
    for value in values:
        if isinstance(value, list):
            flattened.extend(value)
        else:
            flattened.append(value)
    return flattened
