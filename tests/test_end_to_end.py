from __future__ import annotations

import os
import time
from pathlib import Path

import allure
import pytest

from jobrunner.config import Settings
from jobrunner.jobs.dispatcher import run_background_job
from jobrunner.jobs.models import JobRecord, JobStatus
from jobrunner.jobs.store import SQLiteStatusStore, load_record

pytestmark = [
    allure.epic("Background Jobs"),
    allure.feature("Detached Processes"),
    pytest.mark.skipif(os.name == "nt", reason="POSIX process spawning"),
]


@pytest.fixture()
def live_settings(tmp_path: Path, monkeypatch) -> Settings:
    monkeypatch.setenv("JOBRUNNER_DB_PATH", str(tmp_path / "live.db"))
    monkeypatch.setenv("JOBRUNNER_ALLOWED_TARGETS", "jobrunner.jobs.builtin.")
    monkeypatch.setenv("JOBRUNNER_MAX_RETRIES", "3")
    monkeypatch.setenv("JOBRUNNER_RETRY_DELAY_SECONDS", "0")
    monkeypatch.delenv("JOBRUNNER_LOG_DIR", raising=False)
    return Settings.from_env()


def _wait_terminal(db_path: Path, job_id: str, *, timeout: float = 30.0) -> JobRecord:
    store = SQLiteStatusStore(db_path)
    try:
        deadline = time.monotonic() + timeout
        while True:
            record = load_record(store, job_id)
            if record.is_terminal or time.monotonic() > deadline:
                return record
            time.sleep(0.2)
    finally:
        store.close()


def test_echo_job_completes_in_background(live_settings: Settings) -> None:
    started = time.monotonic()
    job_id = run_background_job("jobrunner.jobs.builtin.EchoJob", "handle", [42])

    assert time.monotonic() - started < 5
    record = _wait_terminal(live_settings.db_path, job_id)
    assert record.status == JobStatus.COMPLETED
    assert record.attempts == 1


def test_flaky_job_recovers_in_new_process(live_settings: Settings, tmp_path: Path) -> None:
    counter = tmp_path / "flaky.json"

    job_id = run_background_job(
        "jobrunner.jobs.builtin.FlakyJob",
        "handle",
        [str(counter), 1],
    )

    record = _wait_terminal(live_settings.db_path, job_id)
    assert record.status == JobStatus.COMPLETED
    assert record.attempts == 2
    assert record.last_error == "FlakyJob planned failure 1/1"


def test_always_failing_job_ends_failed(live_settings: Settings) -> None:
    job_id = run_background_job("jobrunner.jobs.builtin.AlwaysFailJob", "handle", ["down"])

    record = _wait_terminal(live_settings.db_path, job_id)
    assert record.status == JobStatus.FAILED
    assert record.attempts == 3
    assert record.last_error == "down"
