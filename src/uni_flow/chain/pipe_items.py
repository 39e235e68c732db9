"""Structured ``__PIPE__`` items passed between chained steps."""

from __future__ import annotations

import json
import logging
import shlex
from typing import Protocol

from uni_flow.chain.models import FilePipeItem, PipeItem, TextPipeItem

logger = logging.getLogger(__name__)

PIPE_MARKER = "__PIPE__"


class PipeArgumentMapper(Protocol):
    """Turns one structured item into extra arguments for the consumer command."""

    def to_args(self, item: PipeItem) -> list[str]:
        """Return the arguments appended to the consumer for this item."""


class DefaultPipeArgumentMapper:
    """``--file <path> [caption]`` for files, one trailing argument for text."""

    def to_args(self, item: PipeItem) -> list[str]:
        if isinstance(item, FilePipeItem):
            args = ["--file", item.path]
            if item.caption:
                args.append(item.caption)
            return args
        return [item.content]


def find_pipe_lines(output: str) -> list[str]:
    """Return the payloads of every ``__PIPE__`` line, in order."""

    return [
        line[len(PIPE_MARKER) :]
        for line in output.splitlines()
        if line.startswith(PIPE_MARKER)
    ]


def parse_pipe_item(payload: str) -> PipeItem | None:
    """Decode one payload; ``None`` means the line is malformed and must be dropped."""

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, RecursionError):
        logger.debug("Dropping malformed pipe payload: %r", payload[:200])
        return None
    if not isinstance(data, dict):
        logger.debug("Dropping non-object pipe payload: %r", payload[:200])
        return None

    if data.get("type") == "file":
        path = data.get("path")
        if not isinstance(path, str) or not path:
            logger.debug("Dropping file pipe item without path: %r", payload[:200])
            return None
        caption = data.get("caption")
        return FilePipeItem(path=path, caption=str(caption) if caption else None)

    content = data.get("content")
    if not isinstance(content, str):
        logger.debug("Dropping text pipe item without string content: %r", payload[:200])
        return None
    return TextPipeItem(content=content)


def build_item_command(command: str, item: PipeItem, mapper: PipeArgumentMapper) -> str:
    """Append the mapped, shell-quoted arguments of ``item`` to ``command``."""

    args = mapper.to_args(item)
    if not args:
        return command
    return f"{command} {' '.join(shlex.quote(arg) for arg in args)}"


def describe_item(item: PipeItem) -> str:
    if isinstance(item, FilePipeItem):
        return f"[file] {item.path}"
    preview = item.content if len(item.content) <= 50 else f"{item.content[:50]}..."
    return f"[text] {preview}"
