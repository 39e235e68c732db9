"""Brace-pattern expansion applied to raw commands before chain parsing."""

from __future__ import annotations

import re

_BRACE_GROUP = re.compile(r"\{([^{}]+)\}")
_NUMERIC_RANGE = re.compile(r"^(-?\d+)\.\.(-?\d+)$")


def expand_braces(value: str) -> list[str]:
    """Expand ``{n..m}`` ranges and ``{a,b,c}`` lists into concrete strings.

    Only the first group is expanded per call; later groups are handled by
    recursion, so ``"{a,b}{1,2}"`` yields ``["a1", "a2", "b1", "b2"]``.
    """

    match = _BRACE_GROUP.search(value)
    if match is None:
        return [value]

    before = value[: match.start()]
    after = value[match.end() :]
    expanded: list[str] = []
    for option in _group_values(match.group(1)):
        expanded.extend(expand_braces(f"{before}{option}{after}"))
    return expanded


def expand_command_braces(commands: list[str]) -> list[str]:
    """Expand every raw command and concatenate the results in input order."""

    expanded: list[str] = []
    for command in commands:
        expanded.extend(expand_braces(command))
    return expanded


def _group_values(content: str) -> list[str]:
    range_match = _NUMERIC_RANGE.match(content)
    if range_match is None:
        return [part.strip() for part in content.split(",")]

    start = int(range_match.group(1))
    end = int(range_match.group(2))
    step = 1 if start <= end else -1
    return [str(number) for number in range(start, end + step, step)]
