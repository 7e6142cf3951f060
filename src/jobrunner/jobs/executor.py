"""Single-attempt executor that runs inside a spawned process."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from jobrunner.jobs.errors import ExecutionFailure
from jobrunner.jobs.models import JobStatus
from jobrunner.jobs.result_log import ResultLogger
from jobrunner.jobs.retry import RetryController, RetryOutcome
from jobrunner.jobs.store import StatusStore, load_record, save_record
from jobrunner.jobs.validator import resolve_entry_point

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AttemptSummary:
    """Result of one executor run for CLI reporting."""

    job_id: str
    status: JobStatus
    attempts: int
    skipped: bool = False
    retry: RetryOutcome | None = None


class JobExecutor:
    """Load a job record, honor its delay, invoke the target, report outcome."""

    def __init__(
        self,
        *,
        store: StatusStore,
        retry_controller: RetryController,
        result_logger: ResultLogger | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.retry_controller = retry_controller
        self.result_logger = result_logger or ResultLogger()
        self._sleep = sleep

    def execute_job(self, job_id: str) -> AttemptSummary:
        """Run one attempt; raises JobNotFound when the record is missing."""

        record = load_record(self.store, job_id)
        if record.is_terminal:
            logger.warning(
                "Job %s is already %s; attempt skipped.",
                job_id,
                record.status.value,
            )
            return AttemptSummary(
                job_id=job_id,
                status=record.status,
                attempts=record.attempts,
                skipped=True,
            )

        record.status = JobStatus.RUNNING
        save_record(self.store, record)

        if record.delay_seconds > 0:
            self._sleep(record.delay_seconds)

        try:
            entry_point = resolve_entry_point(record.target, record.entry_point)
            entry_point(*record.arguments)
        except (Exception, SystemExit) as error:  # noqa: BLE001
            failure = ExecutionFailure.from_exception(error)
            outcome = self.retry_controller.handle_failure(job_id, record, failure)
            return AttemptSummary(
                job_id=job_id,
                status=record.status,
                attempts=record.attempts,
                retry=outcome,
            )

        record.attempts += 1
        record.status = JobStatus.COMPLETED
        save_record(self.store, record)
        self.result_logger.success(record)
        return AttemptSummary(job_id=job_id, status=record.status, attempts=record.attempts)
