"""Entry point tying brace expansion, parsing and orchestration together."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from uni_flow.chain.backend import StepExecutor, SubprocessStepExecutor
from uni_flow.chain.braces import expand_command_braces
from uni_flow.chain.models import ExecutionResult, RunOptions
from uni_flow.chain.orchestrator import ParallelOrchestrator, SequentialOrchestrator
from uni_flow.chain.parser import parse_chain
from uni_flow.chain.pipe_items import PipeArgumentMapper
from uni_flow.chain.retry import RetryController
from uni_flow.config import Settings

logger = logging.getLogger(__name__)


class ChainService:
    """Run raw command chains sequentially or in parallel."""

    def __init__(
        self,
        *,
        executor: StepExecutor,
        backoff_base_seconds: float = 1.0,
        max_workers: int = 0,
        argument_mapper: PipeArgumentMapper | None = None,
        on_progress: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._on_progress = on_progress
        runner = RetryController(
            executor,
            backoff_base_seconds=backoff_base_seconds,
            sleep=sleep,
            on_progress=self._emit,
        )
        self.sequential = SequentialOrchestrator(
            runner,
            argument_mapper=argument_mapper,
            on_progress=self._emit,
        )
        self.parallel = ParallelOrchestrator(
            runner,
            max_workers=max_workers,
            on_progress=self._emit,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        on_progress: Callable[[str], None] | None = None,
    ) -> ChainService:
        executor = SubprocessStepExecutor(
            entrypoint=settings.executor.entrypoint,
            max_capture_chars=settings.executor.max_capture_chars,
            max_stderr_chars=settings.executor.max_stderr_chars,
        )
        return cls(
            executor=executor,
            backoff_base_seconds=settings.retry.backoff_base_seconds,
            max_workers=settings.parallel.max_workers,
            on_progress=on_progress,
        )

    def run_commands(self, commands: list[str], options: RunOptions) -> list[ExecutionResult]:
        """Expand, parse and run ``commands``; returns one result per executed command."""

        started = time.monotonic()
        steps = parse_chain(expand_command_braces(commands))
        if not options.dry_run:
            count = len(steps)
            self._emit(f"⟳ Running {count} command{'' if count == 1 else 's'}...")

        orchestrator = self.parallel if options.parallel else self.sequential
        results = orchestrator.run(steps, options)

        if not options.dry_run:
            self._emit(summary_line(results, elapsed_seconds=time.monotonic() - started))
        return results

    def _emit(self, message: str) -> None:
        logger.info(message)
        if self._on_progress is not None:
            self._on_progress(message)


def summary_line(results: list[ExecutionResult], *, elapsed_seconds: float) -> str:
    failed = sum(1 for result in results if not result.success)
    if failed == 0:
        return f"✓ Done ({elapsed_seconds:.1f}s)"
    return f"✗ {failed} command{'' if failed == 1 else 's'} failed"


def read_commands_from_file(path: Path) -> list[str]:
    """One command per line; blank lines and ``#`` comments are skipped."""

    commands: list[str] = []
    for line in path.read_text("utf-8").splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            commands.append(stripped)
    return commands
