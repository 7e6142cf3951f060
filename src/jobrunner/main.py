"""CLI entrypoint for jobrunner."""

from collections.abc import Callable
from pathlib import Path

import rich_click as click

from jobrunner import __version__
from jobrunner.jobs.controllers import (
    JobDispatchCommand,
    JobListCommand,
    JobRunCommand,
    JobsCliController,
    JobShowCommand,
)
from jobrunner.jobs.errors import JobError
from jobrunner.jobs.models import MAX_PRIORITY, MIN_PRIORITY, JobStatus

click.rich_click.USE_MARKDOWN = True
JOBS_CONTROLLER = JobsCliController()


@click.group()
@click.version_option(version=__version__, prog_name="jobrunner")
def jobrunner() -> None:
    """Background job runner CLI."""


@jobrunner.group()
def jobs() -> None:
    """Dispatch, execute and inspect background jobs."""


@jobs.command("dispatch")
@click.argument("target")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--method",
    "entry_point",
    default="handle",
    show_default=True,
    help="Entry point invoked on the target.",
)
@click.option(
    "--arg",
    "arguments",
    multiple=True,
    help="Positional argument, decoded as JSON when possible. Can be repeated.",
)
@click.option(
    "--priority",
    type=click.IntRange(min=MIN_PRIORITY, max=MAX_PRIORITY),
    default=MIN_PRIORITY,
    show_default=True,
    help="Informational priority stored on the job record.",
)
@click.option(
    "--delay",
    "delay_seconds",
    type=click.IntRange(min=0),
    default=0,
    show_default=True,
    help="Seconds the attempt waits before invoking the target.",
)
def jobs_dispatch(  # noqa: PLR0913
    target: str,
    db_path: Path | None,
    entry_point: str,
    arguments: tuple[str, ...],
    priority: int,
    delay_seconds: int,
) -> None:
    """Validate TARGET, record a pending job and start it in a detached process."""

    _emit_lines(
        _run_or_fail(
            lambda: JOBS_CONTROLLER.dispatch(
                JobDispatchCommand(
                    db_path=db_path,
                    target=target,
                    entry_point=entry_point,
                    arguments=arguments,
                    priority=priority,
                    delay_seconds=delay_seconds,
                ),
            ),
        ),
    )


@jobs.command("run")
@click.argument("job_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def jobs_run(job_id: str, db_path: Path | None) -> None:
    """Execute one attempt of JOB_ID (started by the launcher)."""

    _emit_lines(
        _run_or_fail(
            lambda: JOBS_CONTROLLER.run(JobRunCommand(db_path=db_path, job_id=job_id)),
        ),
    )


@jobs.command("show")
@click.argument("job_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
def jobs_show(job_id: str, db_path: Path | None, output_format: str) -> None:
    """Show the stored record of one job."""

    _emit_lines(
        _run_or_fail(
            lambda: JOBS_CONTROLLER.show(
                JobShowCommand(
                    db_path=db_path,
                    job_id=job_id,
                    output_format=output_format.lower(),
                ),
            ),
        ),
    )


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max jobs to print.",
)
def jobs_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recently updated jobs."""

    _emit_lines(
        _run_or_fail(
            lambda: JOBS_CONTROLLER.list_jobs(
                JobListCommand(db_path=db_path, status=status, limit=limit),
            ),
        ),
    )


def _run_or_fail(action: Callable[[], list[str]]) -> list[str]:
    try:
        return action()
    except (JobError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    jobrunner()
