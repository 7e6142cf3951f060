"""Shared key-value status store for job records."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import event, func
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from jobrunner.jobs.errors import JobNotFound
from jobrunner.jobs.models import (
    STATUS_KEY_PREFIX,
    JobRecord,
    JobStatus,
    record_timestamp,
    status_key,
)
from jobrunner.storage.sqlmodel_models import StatusEntry


class StatusStore(Protocol):
    """Last-write-wins mapping store keyed by ``background_job:{id}``."""

    def get(self, key: str) -> dict[str, Any] | None:
        """Return stored mapping or None when absent."""

    def put(self, key: str, record: dict[str, Any]) -> None:
        """Overwrite the mapping stored under key."""


class SQLiteStatusStore:
    """Status store backed by SQLModel + SQLite.

    Every attempt process opens its own store on the same file. There is no
    compare-and-swap: concurrent writers to one key race and the last ``put``
    wins.
    """

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.sqlite_busy_timeout_ms = sqlite_busy_timeout_ms
        self.engine = _status_engine(db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def init_schema(self) -> None:
        """Create the status table if missing."""

        SQLModel.metadata.create_all(self.engine, tables=[StatusEntry.__table__])

    def get(self, key: str) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.get(StatusEntry, key)
            if row is None:
                return None
            payload = json.loads(row.value)
        if not isinstance(payload, dict):
            raise ValueError(f"Corrupted status entry for {key!r}: expected a mapping.")
        return payload

    def put(self, key: str, record: dict[str, Any]) -> None:
        value = json.dumps(record, ensure_ascii=False, sort_keys=True)
        with Session(self.engine) as session:
            session.merge(StatusEntry(key=key, value=value, updated_at=record_timestamp()))
            session.commit()

    def list_records(
        self,
        *,
        status: JobStatus | None = None,
        limit: int = 50,
    ) -> list[JobRecord]:
        """List the most recently updated job records, optionally by status."""

        query = select(StatusEntry.value).where(
            col(StatusEntry.key).startswith(STATUS_KEY_PREFIX),
        )
        if status is not None:
            query = query.where(func.json_extract(StatusEntry.value, "$.status") == status.value)
        query = query.order_by(col(StatusEntry.updated_at).desc()).limit(limit)
        with Session(self.engine) as session:
            values = session.exec(query).all()
        return [JobRecord.from_mapping(json.loads(value)) for value in values]


def load_record(store: StatusStore, job_id: str) -> JobRecord:
    """Read one job record or raise JobNotFound."""

    payload = store.get(status_key(job_id))
    if payload is None:
        raise JobNotFound(job_id)
    return JobRecord.from_mapping(payload)


def save_record(store: StatusStore, record: JobRecord) -> None:
    """Stamp `updated_at` and persist the full record."""

    record.updated_at = record_timestamp()
    store.put(record.key, record.to_mapping())


def _status_engine(db_path: Path, *, busy_timeout_ms: int) -> Engine:
    # NullPool: a job sleeping through its delay holds no connection.
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"timeout": max(1.0, busy_timeout_ms / 1000.0)},
        poolclass=NullPool,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: sqlite3.Connection, _record: object) -> None:
        cursor = dbapi_connection.cursor()
        # Readers (CLI `show`/`list`) never block the writing attempt process.
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.execute(f"PRAGMA busy_timeout = {max(1, busy_timeout_ms)}")
        cursor.close()

    return engine
