"""Bounded fixed-delay retry policy for failed attempts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from jobrunner.config import JobSettings
from jobrunner.jobs.errors import ExecutionFailure, LaunchFailure
from jobrunner.jobs.launcher import ProcessLauncher
from jobrunner.jobs.models import JobRecord, JobStatus
from jobrunner.jobs.result_log import ResultLogger
from jobrunner.jobs.store import StatusStore, save_record

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RetryOutcome:
    """What the retry controller did with one failed attempt."""

    retried: bool
    failed: bool
    attempts: int
    launch_error: str | None = None


class RetryController:
    """Decide between a fresh attempt process and the terminal `failed` state."""

    def __init__(
        self,
        *,
        store: StatusStore,
        launcher: ProcessLauncher,
        settings: JobSettings,
        result_logger: ResultLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.launcher = launcher
        self.max_retries = settings.max_retries
        self.retry_delay_seconds = settings.retry_delay_seconds
        self.result_logger = result_logger or ResultLogger()
        self._sleep = sleep

    def handle_failure(
        self,
        job_id: str,
        record: JobRecord,
        failure: ExecutionFailure,
    ) -> RetryOutcome:
        """Record the failed attempt, then respawn or fail the job for good."""

        if record.id != job_id:
            raise ValueError(f"Record id {record.id!r} does not match job id {job_id!r}.")

        record.attempts = max(record.attempts, min(record.attempts + 1, self.max_retries))
        record.last_error = failure.message

        if record.attempts < self.max_retries:
            record.status = JobStatus.PENDING_RETRY
            save_record(self.store, record)
            logger.warning(
                "Job %s failed (attempt %d/%d), retrying in %ss: %s",
                job_id,
                record.attempts,
                self.max_retries,
                self.retry_delay_seconds,
                failure.message,
            )
            if self.retry_delay_seconds > 0:
                self._sleep(self.retry_delay_seconds)
            try:
                self.launcher.launch(job_id)
            except LaunchFailure as error:
                logger.error("Retry launch failed for job %s: %s", job_id, error)
                return RetryOutcome(
                    retried=False,
                    failed=False,
                    attempts=record.attempts,
                    launch_error=str(error),
                )
            return RetryOutcome(retried=True, failed=False, attempts=record.attempts)

        record.status = JobStatus.FAILED
        save_record(self.store, record)
        self.result_logger.failure(record, error_message=failure.message, trace=failure.trace)
        return RetryOutcome(retried=False, failed=True, attempts=record.attempts)
