"""Shared test fixtures."""

from __future__ import annotations

import shlex
from pathlib import Path

import pytest
from fakes import ECHO_TOOL_ENTRYPOINT

from uni_flow.chain.backend import SubprocessStepExecutor


@pytest.fixture()
def echo_executor() -> SubprocessStepExecutor:
    """Executor that spawns the deterministic echo tool instead of real services."""

    return SubprocessStepExecutor(entrypoint=ECHO_TOOL_ENTRYPOINT)


@pytest.fixture()
def echo_env(tmp_path: Path, monkeypatch) -> Path:
    """Point the CLI at the echo tool and an isolated flow DB; returns the DB path."""

    db_path = tmp_path / "flows.db"
    monkeypatch.setenv("UNI_ENTRYPOINT", shlex.join(ECHO_TOOL_ENTRYPOINT))
    monkeypatch.setenv("UNI_DB_PATH", str(db_path))
    monkeypatch.setenv("UNI_RETRY_BACKOFF_SECONDS", "0")
    monkeypatch.delenv("UNI_RETRY", raising=False)
    monkeypatch.delenv("UNI_LOG_LEVEL", raising=False)
    return db_path
