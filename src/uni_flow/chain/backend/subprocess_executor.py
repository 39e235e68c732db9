"""Subprocess-based step runner re-entering the tool's own entry point."""

from __future__ import annotations

import codecs
import logging
import os
import re
import shlex
import subprocess
import sys
import threading
import time
from collections.abc import Sequence
from pathlib import Path
from typing import IO, TextIO

from uni_flow.chain.models import ExecutionResult

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 4096
_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def strip_ansi(value: str) -> str:
    """Remove ANSI colour/cursor escape sequences."""

    return _ANSI_ESCAPE.sub("", value)


class SubprocessStepExecutor:
    """Run one command line as ``[*entrypoint, *shlex.split(command)]``.

    Stderr is always echoed live and kept for error reporting. Stdout is either
    echoed live or, when ``capture_output`` is requested, buffered silently so it
    can be piped into the next step.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        entrypoint: Sequence[str],
        max_capture_chars: int = 8_000_000,
        max_stderr_chars: int = 64_000,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.entrypoint = tuple(entrypoint)
        self.max_capture_chars = max_capture_chars
        self.max_stderr_chars = max_stderr_chars
        self.cwd = cwd
        self.env = env
        self._stdout = stdout
        self._stderr = stderr

    def execute(self, command: str, *, capture_output: bool = False) -> ExecutionResult:
        start = time.monotonic()
        try:
            run_args = [*self.entrypoint, *shlex.split(command)]
        except ValueError as error:
            return _failure(command, f"Invalid command line: {error}", start)

        logger.debug("Spawning %s (capture_output=%s)", run_args, capture_output)
        try:
            process = subprocess.Popen(  # noqa: S603
                run_args,
                cwd=self.cwd,
                env=self._process_env(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as error:
            logger.warning("Failed to start %r: %s", command, error)
            return _failure(command, str(error), start)

        stdout_buffer = _BoundedBuffer(self.max_capture_chars, keep_tail=False)
        stderr_buffer = _BoundedBuffer(self.max_stderr_chars, keep_tail=True)
        readers = [
            threading.Thread(
                target=_pump,
                args=(
                    process.stdout,
                    stdout_buffer if capture_output else None,
                    None if capture_output else self._stdout_sink(),
                ),
                daemon=True,
            ),
            threading.Thread(
                target=_pump,
                args=(process.stderr, stderr_buffer, self._stderr_sink()),
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()
        returncode = process.wait()
        for reader in readers:
            reader.join()

        if stdout_buffer.truncated:
            logger.warning(
                "Captured stdout of %r exceeded %d chars and was truncated",
                command,
                self.max_capture_chars,
            )
        output = strip_ansi(stdout_buffer.getvalue().strip()) if capture_output else None
        duration_ms = _elapsed_ms(start)
        if returncode == 0:
            return ExecutionResult(
                command=command,
                success=True,
                duration_ms=duration_ms,
                output=output,
            )

        stderr_text = stderr_buffer.getvalue().strip()
        return ExecutionResult(
            command=command,
            success=False,
            duration_ms=duration_ms,
            error=stderr_text or f"Exit code {returncode}",
            output=output,
        )

    def _process_env(self) -> dict[str, str] | None:
        if self.env is None:
            return None
        env = os.environ.copy()
        env.update(self.env)
        return env

    def _stdout_sink(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _stderr_sink(self) -> TextIO:
        return self._stderr if self._stderr is not None else sys.stderr


class _BoundedBuffer:
    """Text buffer keeping either the first or the last ``limit`` characters."""

    def __init__(self, limit: int, *, keep_tail: bool) -> None:
        self.limit = limit
        self.keep_tail = keep_tail
        self.truncated = False
        self._chunks: list[str] = []
        self._size = 0

    def write(self, text: str) -> None:
        if not text:
            return
        if not self.keep_tail:
            room = self.limit - self._size
            if room <= 0:
                self.truncated = True
                return
            if len(text) > room:
                text = text[:room]
                self.truncated = True
            self._chunks.append(text)
            self._size += len(text)
            return

        self._chunks.append(text)
        self._size += len(text)
        if self._size > self.limit * 2:
            self._compact()

    def getvalue(self) -> str:
        if self.keep_tail and self._size > self.limit:
            self._compact()
        return "".join(self._chunks)

    def _compact(self) -> None:
        joined = "".join(self._chunks)[-self.limit :]
        self._chunks = [joined]
        self._size = len(joined)
        self.truncated = True


def _pump(stream: IO[bytes] | None, buffer: _BoundedBuffer | None, sink: TextIO | None) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    try:
        for chunk in iter(lambda: stream.read1(_CHUNK_SIZE), b""):  # type: ignore[attr-defined]
            _deliver(decoder.decode(chunk), buffer, sink)
        _deliver(decoder.decode(b"", final=True), buffer, sink)
    finally:
        stream.close()


def _deliver(text: str, buffer: _BoundedBuffer | None, sink: TextIO | None) -> None:
    if not text:
        return
    if buffer is not None:
        buffer.write(text)
    if sink is not None:
        sink.write(text)
        sink.flush()


def _failure(command: str, error: str, start: float) -> ExecutionResult:
    return ExecutionResult(
        command=command,
        success=False,
        duration_ms=_elapsed_ms(start),
        error=error,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
