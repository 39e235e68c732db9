"""Sequential and parallel drivers for parsed chains."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from uni_flow.chain.models import ExecutionResult, RunOptions, Step, StepCondition
from uni_flow.chain.pipe_items import (
    DefaultPipeArgumentMapper,
    PipeArgumentMapper,
    build_item_command,
    describe_item,
    find_pipe_lines,
    parse_pipe_item,
)
from uni_flow.chain.retry import RetryController

logger = logging.getLogger(__name__)

DRY_RUN_OUTPUT = "<dry-run output>"


def _noop(_: str) -> None:
    return None


class SequentialOrchestrator:
    """Run steps strictly in order, honouring ``&&``/``||`` and pipes.

    Each step (retries and structured-pipe fan-out included) finishes before
    the next one is considered, because the next step's eligibility and input
    depend on this outcome.
    """

    def __init__(
        self,
        runner: RetryController,
        *,
        argument_mapper: PipeArgumentMapper | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.runner = runner
        self.argument_mapper = argument_mapper or DefaultPipeArgumentMapper()
        self._on_progress = on_progress or _noop

    def run(self, steps: list[Step], options: RunOptions) -> list[ExecutionResult]:  # noqa: C901
        results: list[ExecutionResult] = []
        last_success = True
        last_output: str | None = None

        for index, step in enumerate(steps):
            next_step = steps[index + 1] if index + 1 < len(steps) else None
            capture_output = options.json or (
                next_step is not None and next_step.consumes_pipe_input
            )

            if not step.should_run(last_success):
                logger.debug(
                    "Skipping %r (%s, last_success=%s)",
                    step.command,
                    step.condition.value,
                    last_success,
                )
                continue

            if step.consumes_pipe_input and last_output:
                payloads = find_pipe_lines(last_output)
                if payloads:
                    batch = self._run_structured(
                        step=step,
                        payloads=payloads,
                        options=options,
                        capture_output=capture_output,
                    )
                    results.extend(batch)
                    last_success = all(result.success for result in batch)
                    last_output = None
                else:
                    result = self._run_one(
                        command=f"{step.command} {shlex.quote(last_output)}",
                        label=f"{step.command} (piped)",
                        dry_run_label=f"{step.command} '<piped output>'",
                        options=options,
                        capture_output=capture_output,
                    )
                    results.append(result)
                    last_success = result.success
                    last_output = result.output
            else:
                result = self._run_one(
                    command=step.command,
                    label=step.command,
                    dry_run_label=step.command,
                    options=options,
                    capture_output=capture_output,
                )
                results.append(result)
                last_success = result.success
                last_output = result.output

            if not last_success and step.condition is StepCondition.ALWAYS:
                logger.info("Stopping chain after unconditional failure of %r", step.command)
                break

        return results

    def _run_structured(
        self,
        *,
        step: Step,
        payloads: list[str],
        options: RunOptions,
        capture_output: bool,
    ) -> list[ExecutionResult]:
        self._on_progress(f"─ {step.command} (piping {len(payloads)} items)")
        batch: list[ExecutionResult] = []
        for payload in payloads:
            item = parse_pipe_item(payload)
            if item is None:
                continue
            command = build_item_command(step.command, item, self.argument_mapper)
            if options.dry_run:
                self._on_progress(f"  → {describe_item(item)}")
                batch.append(ExecutionResult(command=command, success=True, duration_ms=0))
                continue
            result = self.runner.run(command, options.retry, capture_output=capture_output)
            self._report(result)
            batch.append(result)
        return batch

    def _run_one(  # noqa: PLR0913
        self,
        *,
        command: str,
        label: str,
        dry_run_label: str,
        options: RunOptions,
        capture_output: bool,
    ) -> ExecutionResult:
        if options.dry_run:
            self._on_progress(f"→ {dry_run_label}")
            return ExecutionResult(
                command=command,
                success=True,
                duration_ms=0,
                output=DRY_RUN_OUTPUT,
            )
        self._on_progress(f"─ {label}")
        result = self.runner.run(command, options.retry, capture_output=capture_output)
        self._report(result)
        return result

    def _report(self, result: ExecutionResult) -> None:
        self._on_progress(_result_line(result))


class ParallelOrchestrator:
    """Run every step at once, ignoring conditions and pipes."""

    def __init__(
        self,
        runner: RetryController,
        *,
        max_workers: int = 0,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.runner = runner
        self.max_workers = max_workers
        self._on_progress = on_progress or _noop

    def run(self, steps: list[Step], options: RunOptions) -> list[ExecutionResult]:
        if options.dry_run:
            for step in steps:
                self._on_progress(f"→ {step.command}")
            return [
                ExecutionResult(command=step.command, success=True, duration_ms=0)
                for step in steps
            ]
        if not steps:
            return []

        workers = self.max_workers or len(steps)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="uni-step") as pool:
            futures = [pool.submit(self._run_step, step, options) for step in steps]
            return [future.result() for future in futures]

    def _run_step(self, step: Step, options: RunOptions) -> ExecutionResult:
        self._on_progress(f"─ {step.command}")
        result = self.runner.run(step.command, options.retry, capture_output=options.json)
        self._on_progress(_result_line(result))
        return result


def _result_line(result: ExecutionResult) -> str:
    if result.success:
        return f"✓ {result.command} ({result.duration_ms / 1000:.1f}s)"
    return f"✗ {result.command}: {result.error or 'failed'}"
