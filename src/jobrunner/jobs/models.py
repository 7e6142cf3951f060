"""Domain models for background jobs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

STATUS_KEY_PREFIX = "background_job:"
MIN_PRIORITY = 1
MAX_PRIORITY = 10


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PENDING_RETRY = "pending_retry"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def status_key(job_id: str) -> str:
    """Status store key for one job id."""

    return f"{STATUS_KEY_PREFIX}{job_id}"


def record_timestamp() -> datetime:
    """Timestamp written to `created_at` / `updated_at`, always UTC."""

    return datetime.now(tz=UTC)


def _parse_timestamp(value: object) -> datetime:
    # naive timestamps are read as UTC
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


@dataclass(slots=True)
class JobRecord:
    """Persisted state of one dispatched job."""

    id: str
    target: str
    entry_point: str
    arguments: list[Any]
    priority: int
    delay_seconds: int
    created_at: datetime
    updated_at: datetime
    attempts: int = 0
    status: JobStatus = JobStatus.PENDING
    last_error: str | None = None

    @property
    def key(self) -> str:
        return status_key(self.id)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_mapping(self) -> dict[str, Any]:
        """Flatten into the JSON-compatible mapping stored under `key`."""

        return {
            "id": self.id,
            "target": self.target,
            "entry_point": self.entry_point,
            "arguments": list(self.arguments),
            "priority": self.priority,
            "delay_seconds": self.delay_seconds,
            "attempts": self.attempts,
            "status": self.status.value,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> JobRecord:
        return cls(
            id=str(data["id"]),
            target=str(data["target"]),
            entry_point=str(data["entry_point"]),
            arguments=list(data.get("arguments") or []),
            priority=int(data.get("priority", MIN_PRIORITY)),
            delay_seconds=int(data.get("delay_seconds", 0)),
            attempts=int(data.get("attempts", 0)),
            status=JobStatus(data["status"]),
            last_error=data.get("last_error"),
            created_at=_parse_timestamp(data["created_at"]),
            updated_at=_parse_timestamp(data["updated_at"]),
        )


@dataclass(slots=True)
class JobEvent:
    """Structured payload sent to the result log channels."""

    job_id: str
    target: str
    entry_point: str
    attempts: int
    error_message: str | None = None
    trace: str | None = None

    @classmethod
    def from_record(
        cls,
        record: JobRecord,
        *,
        error_message: str | None = None,
        trace: str | None = None,
    ) -> JobEvent:
        return cls(
            job_id=record.id,
            target=record.target,
            entry_point=record.entry_point,
            attempts=record.attempts,
            error_message=error_message,
            trace=trace,
        )

    def to_log_details(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            "job_id": self.job_id,
            "target": self.target,
            "entry_point": self.entry_point,
            "attempts": self.attempts,
        }
        if self.error_message is not None:
            details["error_message"] = self.error_message
        if self.trace is not None:
            details["trace"] = self.trace
        return details
