"""Controller for the ``uni pipe`` CLI command."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass

from uni_flow.chain.backend import SubprocessStepExecutor
from uni_flow.chain.controllers import CliReport
from uni_flow.config import Settings
from uni_flow.pipe.runner import PipeOptions, PipeRunner


@dataclass(slots=True)
class PipeCommand:
    """CLI input for the pipe pipeline."""

    source: str
    select: str | None
    filter: str | None
    each: str | None
    dry_run: bool
    json_output: bool


class PipeCliController:
    """Builds a pipe runner from settings and renders its outcome."""

    def pipe(
        self,
        command: PipeCommand,
        *,
        on_progress: Callable[[str], None],
        emit: Callable[[str], None],
    ) -> CliReport:
        settings = Settings.from_env()
        settings.validate()
        executor = SubprocessStepExecutor(
            entrypoint=settings.executor.entrypoint,
            max_capture_chars=settings.executor.max_capture_chars,
            max_stderr_chars=settings.executor.max_stderr_chars,
        )
        runner = PipeRunner(
            executor,
            on_progress=None if command.json_output else on_progress,
            emit=emit,
        )
        options = PipeOptions(
            select=command.select,
            filter=command.filter,
            each=command.each,
            dry_run=command.dry_run,
            json=command.json_output,
        )
        result = runner.run(command.source, options)

        lines: list[str] = []
        if command.json_output and (command.each or not result.success):
            lines.append(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        elif not result.success and not command.json_output:
            lines.extend(
                f"✗ {item.error}" for item in result.results if item.error and item.command is None
            )
        return CliReport(lines=lines, success=result.success)
