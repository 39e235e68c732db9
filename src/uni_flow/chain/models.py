"""Domain models for chain parsing and execution."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class StepCondition(str, Enum):
    """When a step runs relative to the previous executed step."""

    ALWAYS = "always"
    ON_SUCCESS = "on-success"
    ON_FAILURE = "on-failure"


@dataclass(frozen=True, slots=True)
class Step:
    """One chain element produced by the parser."""

    command: str
    condition: StepCondition = StepCondition.ALWAYS
    consumes_pipe_input: bool = False

    def should_run(self, last_success: bool) -> bool:
        if self.condition is StepCondition.ON_SUCCESS:
            return last_success
        if self.condition is StepCondition.ON_FAILURE:
            return not last_success
        return True


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of one executed command."""

    command: str
    success: bool
    duration_ms: int
    error: str | None = None
    attempts: int | None = None
    output: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "command": self.command,
            "success": self.success,
            "duration_ms": self.duration_ms,
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.attempts is not None:
            payload["attempts"] = self.attempts
        if self.output is not None:
            payload["output"] = self.output
        return payload


@dataclass(slots=True)
class RunOptions:
    """Options shared by sequential and parallel runs."""

    parallel: bool = False
    dry_run: bool = False
    json: bool = False
    retry: int = 0


@dataclass(frozen=True, slots=True)
class FilePipeItem:
    """Structured pipe item pointing at a file produced upstream."""

    path: str
    caption: str | None = None


@dataclass(frozen=True, slots=True)
class TextPipeItem:
    """Structured pipe item carrying a text payload."""

    content: str


PipeItem = FilePipeItem | TextPipeItem
