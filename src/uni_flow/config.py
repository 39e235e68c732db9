"""Runtime configuration for chain execution, piping and flow storage."""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _default_entrypoint() -> tuple[str, ...]:
    return (sys.executable, "-m", "uni_flow")


def _default_db_path() -> Path:
    return Path.home() / ".uni" / "flows.db"


@dataclass(slots=True)
class ExecutorSettings:
    """Subprocess backend settings."""

    entrypoint: tuple[str, ...] = field(default_factory=_default_entrypoint)
    max_capture_chars: int = 8_000_000
    max_stderr_chars: int = 64_000


@dataclass(slots=True)
class RetrySettings:
    """Retry/backoff settings applied to every step of a run."""

    default_retry: int = 0
    backoff_base_seconds: float = 1.0


@dataclass(slots=True)
class ParallelSettings:
    """Parallel fan-out settings."""

    max_workers: int = 0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = field(default_factory=_default_db_path)
    executor: ExecutorSettings = field(default_factory=ExecutorSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    parallel: ParallelSettings = field(default_factory=ParallelSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for interactive use."""

        env_db_path = os.getenv("UNI_DB_PATH", "").strip()
        return cls(
            db_path=db_path or (Path(env_db_path) if env_db_path else _default_db_path()),
            executor=ExecutorSettings(
                entrypoint=_env_entrypoint("UNI_ENTRYPOINT"),
                max_capture_chars=_env_int("UNI_MAX_CAPTURE_CHARS", 8_000_000),
                max_stderr_chars=_env_int("UNI_MAX_STDERR_CHARS", 64_000),
            ),
            retry=RetrySettings(
                default_retry=_env_int("UNI_RETRY", 0),
                backoff_base_seconds=_env_float("UNI_RETRY_BACKOFF_SECONDS", 1.0),
            ),
            parallel=ParallelSettings(
                max_workers=_env_int("UNI_PARALLEL_MAX_WORKERS", 0),
            ),
            log_level=os.getenv("UNI_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )

    def validate(self) -> None:
        """Raise configuration error for values the engine cannot work with."""

        if not self.executor.entrypoint:
            raise ValueError("UNI_ENTRYPOINT must name at least one executable.")
        if self.executor.max_capture_chars <= 0:
            raise ValueError("UNI_MAX_CAPTURE_CHARS must be a positive integer.")
        if self.executor.max_stderr_chars <= 0:
            raise ValueError("UNI_MAX_STDERR_CHARS must be a positive integer.")
        if self.retry.default_retry < 0:
            raise ValueError("UNI_RETRY must be >= 0.")
        if self.retry.backoff_base_seconds < 0:
            raise ValueError("UNI_RETRY_BACKOFF_SECONDS must be >= 0.")
        if self.parallel.max_workers < 0:
            raise ValueError("UNI_PARALLEL_MAX_WORKERS must be >= 0.")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"Invalid UNI_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(sorted(_LOG_LEVELS))}.",
            )


def _env_entrypoint(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return _default_entrypoint()
    try:
        return tuple(shlex.split(raw))
    except ValueError as error:
        raise ValueError(f"Invalid {name} value: {raw!r} ({error})") from error


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as error:
        raise ValueError(f"Invalid float value for {name}: {raw!r}") from error
