"""Structured success/failure channels for finished jobs."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from jobrunner.jobs.models import JobEvent, JobRecord

SUCCESS_CHANNEL = "jobrunner.background_jobs"
FAILURE_CHANNEL = "jobrunner.background_jobs_errors"
SUCCESS_LOG_FILE = "background_jobs.log"
FAILURE_LOG_FILE = "background_jobs_errors.log"

logger = logging.getLogger(__name__)


class ResultLogger:
    """Emit one structured event per finished job; never raises."""

    def __init__(
        self,
        *,
        success_logger: logging.Logger | None = None,
        failure_logger: logging.Logger | None = None,
    ) -> None:
        self.success_logger = success_logger or logging.getLogger(SUCCESS_CHANNEL)
        self.failure_logger = failure_logger or logging.getLogger(FAILURE_CHANNEL)

    def success(self, record: JobRecord) -> None:
        event = JobEvent.from_record(record)
        self._emit(self.success_logger, logging.INFO, "Job completed successfully", event)

    def failure(self, record: JobRecord, *, error_message: str, trace: str) -> None:
        event = JobEvent.from_record(record, error_message=error_message, trace=trace)
        self._emit(self.failure_logger, logging.ERROR, "Job failed", event)

    def _emit(self, target: logging.Logger, level: int, message: str, event: JobEvent) -> None:
        try:
            target.log(
                level,
                "%s: %s",
                message,
                event.job_id,
                extra={"job_event": event.to_log_details()},
            )
        except (OSError, ValueError, TypeError):  # pragma: no cover - best effort
            logger.debug("Result log emit failed for job %s", event.job_id, exc_info=True)


class JsonEventFormatter(logging.Formatter):
    """Render one JSON line per record, merging the `job_event` payload."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "channel": record.name,
            "message": record.getMessage(),
        }
        job_event = getattr(record, "job_event", None)
        if isinstance(job_event, dict):
            payload.update(job_event)
        return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def configure_result_logging(log_dir: Path) -> None:
    """Attach JSON-lines file sinks to both result channels (idempotent)."""

    log_dir.mkdir(parents=True, exist_ok=True)
    for channel, filename, level in (
        (SUCCESS_CHANNEL, SUCCESS_LOG_FILE, logging.INFO),
        (FAILURE_CHANNEL, FAILURE_LOG_FILE, logging.ERROR),
    ):
        channel_logger = logging.getLogger(channel)
        path = (log_dir / filename).resolve()
        if any(
            isinstance(handler, logging.FileHandler)
            and Path(handler.baseFilename).resolve() == path
            for handler in channel_logger.handlers
        ):
            continue
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(JsonEventFormatter())
        channel_logger.addHandler(handler)
        channel_logger.setLevel(min(channel_logger.level or level, level))
