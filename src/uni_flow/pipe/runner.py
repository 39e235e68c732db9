"""Run a source command and select, filter and fan out over its JSON output."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from uni_flow.chain.backend import StepExecutor
from uni_flow.pipe.filter_dsl import FilterSyntaxError, compile_filter
from uni_flow.pipe.selector import select_path
from uni_flow.pipe.template import stringify, substitute_template

logger = logging.getLogger(__name__)

DRY_RUN_SAMPLE: list[dict[str, Any]] = [
    {"sample": "data", "index": 0},
    {"sample": "data", "index": 1},
]


@dataclass(slots=True)
class PipeOptions:
    """``--select``/``--filter``/``--each`` and rendering flags."""

    select: str | None = None
    filter: str | None = None
    each: str | None = None
    dry_run: bool = False
    json: bool = False


@dataclass(slots=True)
class PipeItemResult:
    """Outcome for one selected item."""

    item: Any
    success: bool
    command: str | None = None
    output: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"item": self.item, "success": self.success}
        if self.command is not None:
            payload["command"] = self.command
        if self.output is not None:
            payload["output"] = self.output
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class PipeResult:
    """Aggregate outcome of one pipeline run."""

    success: bool
    items_processed: int
    items_matched: int
    results: list[PipeItemResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "items_processed": self.items_processed,
            "items_matched": self.items_matched,
            "results": [result.to_dict() for result in self.results],
        }


class PipeRunner:
    """Source command -> select -> filter -> emit or ``--each`` per item."""

    def __init__(
        self,
        executor: StepExecutor,
        *,
        on_progress: Callable[[str], None] | None = None,
        emit: Callable[[str], None] | None = None,
    ) -> None:
        self.executor = executor
        self._on_progress = on_progress
        self._emit_output = emit

    def run(self, source_command: str, options: PipeOptions) -> PipeResult:
        self._progress(f"⟳ Running: {source_command}")
        if options.dry_run:
            self._progress(f"  → Would execute: {source_command} --json")
            source_data: Any = DRY_RUN_SAMPLE
        else:
            loaded = self._load_source(source_command)
            if isinstance(loaded, PipeResult):
                return loaded
            source_data = loaded

        items = select_path(source_data, options.select or "")
        items_processed = len(items)
        self._progress(f"  → Selected: {items_processed} item(s)")

        if options.filter:
            items = self._apply_filter(items, options.filter)
            self._progress(f"  → After filter: {len(items)} item(s)")
        items_matched = len(items)

        if not options.each:
            self._emit_items(items, as_json=options.json)
            return PipeResult(
                success=True,
                items_processed=items_processed,
                items_matched=items_matched,
                results=[PipeItemResult(item=item, success=True) for item in items],
            )

        results = self._run_each(items, template=options.each, options=options)
        success = all(result.success for result in results)
        if not options.dry_run:
            failed = sum(1 for result in results if not result.success)
            if success:
                self._progress(f"✓ Completed {len(results)} item(s)")
            else:
                self._progress(f"✗ {failed}/{len(results)} failed")
        return PipeResult(
            success=success,
            items_processed=items_processed,
            items_matched=items_matched,
            results=results,
        )

    def _load_source(self, source_command: str) -> Any:
        result = self.executor.execute(f"{source_command} --json", capture_output=True)
        if not result.success:
            logger.warning("Pipe source %r failed: %s", source_command, result.error)
            return _terminal_failure(result.error or "Source command failed")

        raw = result.output or "[]"
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, RecursionError):
            logger.warning("Pipe source %r returned non-JSON output", source_command)
            return _terminal_failure(f"Failed to parse source output as JSON: {raw[:100]}")

    def _apply_filter(self, items: list[Any], expression: str) -> list[Any]:
        try:
            compiled = compile_filter(expression)
        except FilterSyntaxError as error:
            logger.warning("Invalid filter %r matches nothing: %s", expression, error)
            return []
        return [item for item in items if compiled.matches(item)]

    def _run_each(
        self,
        items: list[Any],
        *,
        template: str,
        options: PipeOptions,
    ) -> list[PipeItemResult]:
        self._progress(f"  → Executing: {template}")
        results: list[PipeItemResult] = []
        total = len(items)
        for index, item in enumerate(items):
            command = substitute_template(template, item, index)
            if options.dry_run:
                self._progress(f"  [{index + 1}/{total}] {command}")
                results.append(PipeItemResult(item=item, command=command, success=True))
                continue

            self._progress(f"[{index + 1}/{total}] {command}")
            execution = self.executor.execute(command, capture_output=options.json)
            results.append(
                PipeItemResult(
                    item=item,
                    command=command,
                    success=execution.success,
                    output=execution.output,
                    error=execution.error,
                ),
            )
            if not execution.success:
                self._progress(f"  ✗ {execution.error}")
        return results

    def _emit_items(self, items: list[Any], *, as_json: bool) -> None:
        if self._emit_output is None:
            return
        if as_json:
            self._emit_output(json.dumps(items, indent=2, ensure_ascii=False))
            return
        for item in items:
            if isinstance(item, (dict, list)):
                self._emit_output(json.dumps(item, ensure_ascii=False))
            else:
                self._emit_output(stringify(item))

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self._on_progress is not None:
            self._on_progress(message)


def _terminal_failure(error: str) -> PipeResult:
    return PipeResult(
        success=False,
        items_processed=0,
        items_matched=0,
        results=[PipeItemResult(item=None, success=False, error=error)],
    )
