"""``{{field}}`` substitution for per-item command templates."""

from __future__ import annotations

import json
import re
from typing import Any

from uni_flow.pipe.selector import get_by_path

_SELF = re.compile(r"\{\{\s*\.\s*\}\}")
_VALUE = re.compile(r"\{\{\s*value\s*\}\}")
_INDEX = re.compile(r"\{\{\s*index\s*\}\}")
_FIELD = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*\}\}")


def substitute_template(template: str, item: Any, index: int) -> str:
    """Render ``template`` for one item at zero-based ``index``.

    ``{{.}}`` is the item itself, ``{{value}}`` is the item for scalars (and the
    ``value`` field for records), ``{{index}}`` is the position, and any other
    ``{{path}}`` is looked up on the item; unresolved fields render as ``""``.
    """

    result = _SELF.sub(lambda _: stringify(item), template)
    is_record = isinstance(item, dict)
    if not is_record:
        result = _VALUE.sub(lambda _: stringify(item), result)
    result = _INDEX.sub(str(index), result)
    if not is_record:
        return result
    return _FIELD.sub(lambda match: stringify(get_by_path(item, match.group(1))), result)


def stringify(value: Any) -> str:
    """Render a JSON value the way it should appear inside a command line."""

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)
