"""Positional ``$N`` substitution for flow command templates."""

from __future__ import annotations

import re

_PLACEHOLDER = re.compile(r"\$(\d+)")


def substitute_args(commands: list[str], args: list[str]) -> list[str]:
    """Replace ``$1``..``$N`` with ``args``; placeholders without an argument stay literal."""

    def _replace(match: re.Match[str]) -> str:
        position = int(match.group(1))
        if 1 <= position <= len(args):
            return args[position - 1]
        return match.group(0)

    return [_PLACEHOLDER.sub(_replace, command) for command in commands]
