"""Bounded retry with exponential backoff around a step executor."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from uni_flow.chain.backend.base import StepExecutor
from uni_flow.chain.models import ExecutionResult

logger = logging.getLogger(__name__)


class RetryController:
    """Run a command up to ``retry + 1`` times, sleeping 1s, 2s, 4s... in between."""

    def __init__(
        self,
        executor: StepExecutor,
        *,
        backoff_base_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.executor = executor
        self.backoff_base_seconds = backoff_base_seconds
        self._sleep = sleep
        self._on_progress = on_progress

    def run(self, command: str, retry: int = 0, *, capture_output: bool = False) -> ExecutionResult:
        max_attempts = max(0, retry) + 1
        attempt = 1
        while True:
            result = self.executor.execute(command, capture_output=capture_output)
            if result.success or attempt >= max_attempts:
                return replace(result, attempts=attempt)

            delay = self.compute_delay(attempt)
            logger.warning(
                "Attempt %d/%d of %r failed: %s; retrying in %.1fs",
                attempt,
                max_attempts,
                command,
                result.error,
                delay,
            )
            if self._on_progress is not None:
                self._on_progress(f"↻ Retry {attempt}/{retry} in {delay:g}s...")
            self._sleep(delay)
            attempt += 1

    def compute_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2 ** max(attempt - 1, 0))
