"""Flow persistence: repository protocol, in-memory and SQLite implementations."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from sqlalchemy import event
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from uni_flow.flows.sqlmodel_models import FlowRecord


class FlowRepository(Protocol):
    """Lookup/storage capability injected into flow services."""

    def list_flows(self) -> dict[str, list[str]]:
        """Return every flow keyed by name, in name order."""

    def get_flow(self, name: str) -> list[str] | None:
        """Return the command templates of one flow, or ``None``."""

    def save_flow(self, name: str, commands: list[str]) -> None:
        """Create or replace a flow."""

    def remove_flow(self, name: str) -> bool:
        """Delete a flow; ``False`` when it did not exist."""


class InMemoryFlowRepository:
    """Dict-backed repository for tests and ephemeral sessions."""

    def __init__(self, flows: dict[str, list[str]] | None = None) -> None:
        self._flows = {name: list(commands) for name, commands in (flows or {}).items()}

    def list_flows(self) -> dict[str, list[str]]:
        return {name: list(self._flows[name]) for name in sorted(self._flows)}

    def get_flow(self, name: str) -> list[str] | None:
        commands = self._flows.get(name)
        return list(commands) if commands is not None else None

    def save_flow(self, name: str, commands: list[str]) -> None:
        self._flows[name] = list(commands)

    def remove_flow(self, name: str) -> bool:
        return self._flows.pop(name, None) is not None


class SqlFlowRepository:
    """Flow persistence facade backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = 5000) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={
                "check_same_thread": False,
                "timeout": max(1.0, busy_timeout_ms / 1000.0),
            },
            poolclass=NullPool,
        )
        event.listen(
            self.engine,
            "connect",
            lambda dbapi_connection, _: _apply_sqlite_pragmas(
                dbapi_connection,
                busy_timeout_ms=busy_timeout_ms,
            ),
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Create the flows table when missing."""

        SQLModel.metadata.create_all(self.engine, tables=[FlowRecord.__table__])  # type: ignore[attr-defined]

    def list_flows(self) -> dict[str, list[str]]:
        with Session(self.engine) as session:
            rows = session.exec(select(FlowRecord).order_by(col(FlowRecord.name).asc())).all()
            return {row.name: _decode_commands(row.commands_json) for row in rows}

    def get_flow(self, name: str) -> list[str] | None:
        with Session(self.engine) as session:
            row = session.get(FlowRecord, name)
            if row is None:
                return None
            return _decode_commands(row.commands_json)

    def save_flow(self, name: str, commands: list[str]) -> None:
        now = datetime.now(tz=UTC)
        payload = json.dumps(list(commands), ensure_ascii=False)
        with Session(self.engine) as session:
            row = session.get(FlowRecord, name)
            if row is None:
                row = FlowRecord(name=name, commands_json=payload, created_at=now, updated_at=now)
            else:
                row.commands_json = payload
                row.updated_at = now
            session.add(row)
            session.commit()

    def remove_flow(self, name: str) -> bool:
        with Session(self.engine) as session:
            row = session.get(FlowRecord, name)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True


def _decode_commands(raw: str) -> list[str]:
    decoded = json.loads(raw)
    if not isinstance(decoded, list):
        raise ValueError(f"Stored flow commands must be a JSON array, got {type(decoded).__name__}")
    return [str(command) for command in decoded]


def _apply_sqlite_pragmas(dbapi_connection: sqlite3.Connection, *, busy_timeout_ms: int) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute(f"PRAGMA busy_timeout = {max(1, busy_timeout_ms)}")
    cursor.close()
