"""Controllers for job CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from jobrunner.config import Settings
from jobrunner.jobs.dispatcher import JobDispatcher
from jobrunner.jobs.executor import JobExecutor
from jobrunner.jobs.launcher import ProcessLauncher, SubprocessSpawner
from jobrunner.jobs.models import JobRecord, JobStatus
from jobrunner.jobs.result_log import ResultLogger, configure_result_logging
from jobrunner.jobs.retry import RetryController
from jobrunner.jobs.store import SQLiteStatusStore, load_record


@dataclass(slots=True)
class JobDispatchCommand:
    """CLI input for job dispatch."""

    db_path: Path | None
    target: str
    entry_point: str
    arguments: tuple[str, ...]
    priority: int
    delay_seconds: int


@dataclass(slots=True)
class JobRunCommand:
    """CLI input for one executor attempt."""

    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class JobShowCommand:
    """CLI input for single job inspection."""

    db_path: Path | None
    job_id: str
    output_format: str = "table"


@dataclass(slots=True)
class JobListCommand:
    """CLI input for job listing."""

    db_path: Path | None
    status: str | None
    limit: int


class JobsCliController:
    """Coordinates dispatch, attempt execution and inspection CLI operations."""

    def dispatch(self, command: JobDispatchCommand) -> list[str]:
        settings = _settings(command.db_path)
        arguments = [_parse_argument(value) for value in command.arguments]
        with _store(settings) as store:
            dispatcher = JobDispatcher(
                store=store,
                launcher=_launcher(settings),
                settings=settings.jobs,
            )
            job_id = dispatcher.dispatch(
                command.target,
                command.entry_point,
                arguments,
                priority=command.priority,
                delay_seconds=command.delay_seconds,
            )
        return [f"Job dispatched: job_id={job_id} target={command.target}.{command.entry_point}"]

    def run(self, command: JobRunCommand) -> list[str]:
        settings = _settings(command.db_path)
        if settings.jobs.log_dir is not None:
            configure_result_logging(settings.jobs.log_dir)
        result_logger = ResultLogger()
        with _store(settings) as store:
            executor = JobExecutor(
                store=store,
                retry_controller=RetryController(
                    store=store,
                    launcher=_launcher(settings),
                    settings=settings.jobs,
                    result_logger=result_logger,
                ),
                result_logger=result_logger,
            )
            summary = executor.execute_job(command.job_id)

        line = (
            f"Attempt finished: job_id={summary.job_id} status={summary.status.value} "
            f"attempts={summary.attempts}"
        )
        if summary.skipped:
            line += " skipped=terminal"
        if summary.retry is not None and summary.retry.launch_error:
            line += f" launch_error={summary.retry.launch_error}"
        return [line]

    def show(self, command: JobShowCommand) -> list[str]:
        settings = _settings(command.db_path)
        with _store(settings) as store:
            record = load_record(store, command.job_id)
        if command.output_format == "json":
            return [json.dumps(record.to_mapping(), indent=2, ensure_ascii=False)]
        return [
            f"Job: {record.id}",
            f"  target={record.target} entry_point={record.entry_point}",
            f"  arguments={json.dumps(record.arguments, ensure_ascii=False)}",
            f"  status={record.status.value} attempts={record.attempts} "
            f"priority={record.priority} delay_seconds={record.delay_seconds}",
            f"  created_at={record.created_at.isoformat()} "
            f"updated_at={record.updated_at.isoformat()}",
            f"  last_error={record.last_error or '-'}",
        ]

    def list_jobs(self, command: JobListCommand) -> list[str]:
        settings = _settings(command.db_path)
        status = JobStatus(command.status.strip().lower()) if command.status else None
        with _store(settings) as store:
            records = store.list_records(status=status, limit=command.limit)
        if not records:
            return ["No jobs."]
        return [_format_row(record) for record in records]


def _format_row(record: JobRecord) -> str:
    return (
        f"{record.id} | {record.status.value:<13} | attempts={record.attempts} "
        f"| {record.target}.{record.entry_point} | last_error={record.last_error or '-'}"
    )


def _parse_argument(value: str) -> object:
    """Decode one --arg value as JSON, falling back to the raw string."""

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate_for_jobs()
    return settings


def _launcher(settings: Settings) -> ProcessLauncher:
    return ProcessLauncher(spawner=SubprocessSpawner(), db_path=settings.db_path)


@contextmanager
def _store(settings: Settings) -> Iterator[SQLiteStatusStore]:
    store = SQLiteStatusStore(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    store.init_schema()
    try:
        yield store
    finally:
        store.close()
