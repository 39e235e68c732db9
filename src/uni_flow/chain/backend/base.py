"""Backend interface for step execution."""

from __future__ import annotations

from typing import Protocol

from uni_flow.chain.models import ExecutionResult


class StepExecutor(Protocol):
    """Protocol implemented by step runners."""

    def execute(self, command: str, *, capture_output: bool = False) -> ExecutionResult:
        """Run one command line once and return its outcome."""
