"""Error taxonomy for job dispatch and execution."""

from __future__ import annotations

import traceback


class JobError(RuntimeError):
    """Base error for background job operations."""


class InvalidArgument(JobError, ValueError):
    """Dispatch request carries an out-of-range or unserializable value."""


class ClassNotAllowed(JobError):
    """Target does not match any allow-listed namespace prefix."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Class {target} is not allowed to run as background job")
        self.target = target


class MethodNotFound(JobError):
    """Entry point is not a callable member of the target."""

    def __init__(self, target: str, entry_point: str, *, reason: str | None = None) -> None:
        message = f"Method {entry_point} does not exist in class {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.target = target
        self.entry_point = entry_point


class JobNotFound(JobError):
    """No record exists for the requested job id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class LaunchFailure(JobError):
    """Executor process could not be spawned."""


class ExecutionFailure(JobError):
    """Error raised by the invoked job, captured with its traceback."""

    def __init__(self, message: str, *, trace: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.trace = trace

    @classmethod
    def from_exception(cls, error: BaseException) -> ExecutionFailure:
        message = str(error) or type(error).__name__
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(message, trace=trace)
