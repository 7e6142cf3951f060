"""Dispatch entry point: validate, record, launch."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from jobrunner.config import JobSettings, Settings
from jobrunner.jobs.errors import InvalidArgument
from jobrunner.jobs.launcher import ProcessLauncher, SubprocessSpawner
from jobrunner.jobs.models import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    JobRecord,
    JobStatus,
    record_timestamp,
)
from jobrunner.jobs.store import SQLiteStatusStore, StatusStore, save_record
from jobrunner.jobs.validator import validate_target

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT = "handle"


def new_job_id() -> str:
    """Wall-clock nanoseconds plus a random suffix; never reused."""

    return f"job_{time.time_ns():x}.{uuid4().hex[:12]}"


class JobDispatcher:
    """Accept work requests and start their first attempt without waiting."""

    def __init__(
        self,
        *,
        store: StatusStore,
        launcher: ProcessLauncher,
        settings: JobSettings,
    ) -> None:
        self.store = store
        self.launcher = launcher
        self.allowed_prefixes = settings.allowed_prefixes

    def dispatch(
        self,
        target: str,
        entry_point: str = DEFAULT_ENTRY_POINT,
        arguments: Iterable[Any] = (),
        priority: int = MIN_PRIORITY,
        delay_seconds: int = 0,
    ) -> str:
        """Create a pending job record, spawn its executor and return the job id."""

        if isinstance(arguments, (str, bytes)):
            raise InvalidArgument("arguments must be a sequence of values, not a string")
        values = list(arguments)
        _check_dispatch_arguments(
            arguments=values,
            priority=priority,
            delay_seconds=delay_seconds,
        )
        validate_target(target, entry_point, self.allowed_prefixes)

        now = record_timestamp()
        record = JobRecord(
            id=new_job_id(),
            target=target,
            entry_point=entry_point,
            arguments=values,
            priority=priority,
            delay_seconds=delay_seconds,
            created_at=now,
            updated_at=now,
            attempts=0,
            status=JobStatus.PENDING,
        )
        save_record(self.store, record)
        self.launcher.launch(record.id)
        logger.info("Dispatched job %s -> %s.%s", record.id, target, entry_point)
        return record.id


def run_background_job(
    target: str,
    entry_point: str = DEFAULT_ENTRY_POINT,
    arguments: Iterable[Any] = (),
    priority: int = MIN_PRIORITY,
    delay_seconds: int = 0,
    *,
    settings: Settings | None = None,
) -> str:
    """Dispatch one job using settings from the environment."""

    settings = settings or Settings.from_env()
    settings.validate_for_jobs()
    store = SQLiteStatusStore(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    try:
        store.init_schema()
        dispatcher = JobDispatcher(
            store=store,
            launcher=ProcessLauncher(spawner=SubprocessSpawner(), db_path=settings.db_path),
            settings=settings.jobs,
        )
        return dispatcher.dispatch(
            target,
            entry_point,
            arguments,
            priority=priority,
            delay_seconds=delay_seconds,
        )
    finally:
        store.close()


def _check_dispatch_arguments(
    *,
    arguments: list[Any],
    priority: int,
    delay_seconds: int,
) -> None:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise InvalidArgument(f"priority must be an integer, got {priority!r}")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise InvalidArgument(
            f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}, got {priority}",
        )
    if isinstance(delay_seconds, bool) or not isinstance(delay_seconds, int):
        raise InvalidArgument(f"delay_seconds must be an integer, got {delay_seconds!r}")
    if delay_seconds < 0:
        raise InvalidArgument(f"delay_seconds must be >= 0, got {delay_seconds}")
    try:
        json.dumps(arguments)
    except (TypeError, ValueError) as error:
        raise InvalidArgument(f"arguments must be JSON-serializable: {error}") from error
