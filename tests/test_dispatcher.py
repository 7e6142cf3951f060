from __future__ import annotations

from pathlib import Path

import allure
import pytest

from jobrunner.config import JobSettings, Settings
from jobrunner.jobs import dispatcher as dispatcher_module
from jobrunner.jobs.dispatcher import JobDispatcher, new_job_id, run_background_job
from jobrunner.jobs.errors import ClassNotAllowed, InvalidArgument, LaunchFailure, MethodNotFound
from jobrunner.jobs.launcher import ProcessLauncher
from jobrunner.jobs.models import JobStatus, status_key
from jobrunner.jobs.store import SQLiteStatusStore, load_record

pytestmark = [
    allure.epic("Background Jobs"),
    allure.feature("Dispatch"),
]

ECHO = "jobrunner.jobs.builtin.EchoJob"


def _dispatcher(store, launcher, job_settings) -> JobDispatcher:
    return JobDispatcher(store=store, launcher=launcher, settings=job_settings)


def _row_count(store: SQLiteStatusStore) -> int:
    return len(store.list_records(limit=500))


def test_dispatch_creates_pending_record_and_launches_once(
    store,
    launcher,
    spawner,
    job_settings,
) -> None:
    job_id = _dispatcher(store, launcher, job_settings).dispatch(
        ECHO,
        "handle",
        [42],
        priority=7,
        delay_seconds=2,
    )

    assert job_id
    record = load_record(store, job_id)
    assert record.status == JobStatus.PENDING
    assert record.attempts == 0
    assert record.arguments == [42]
    assert record.priority == 7
    assert record.delay_seconds == 2
    assert record.last_error is None
    assert spawner.launched_job_ids == [job_id]
    assert spawner.commands[0][1:] == ["-m", "jobrunner.main", "jobs", "run", job_id]


def test_dispatch_pins_store_path_for_child_process(store, launcher, spawner, job_settings) -> None:
    _dispatcher(store, launcher, job_settings).dispatch(ECHO)

    env = spawner.envs[0]
    assert env is not None
    assert env["JOBRUNNER_DB_PATH"] == str(store.db_path)


def test_dispatch_defaults(store, launcher, job_settings) -> None:
    job_id = _dispatcher(store, launcher, job_settings).dispatch(ECHO)

    record = load_record(store, job_id)
    assert record.entry_point == "handle"
    assert record.arguments == []
    assert record.priority == 1
    assert record.delay_seconds == 0


def test_dispatch_returns_unique_ids(store, launcher, job_settings) -> None:
    dispatcher = _dispatcher(store, launcher, job_settings)

    job_ids = {dispatcher.dispatch(ECHO, "handle", [index]) for index in range(25)}

    assert len(job_ids) == 25


def test_new_job_id_is_prefixed_and_distinct() -> None:
    first, second = new_job_id(), new_job_id()

    assert first.startswith("job_")
    assert first != second


def test_dispatch_rejects_target_outside_allow_list(store, launcher, spawner, job_settings) -> None:
    with pytest.raises(ClassNotAllowed):
        _dispatcher(store, launcher, job_settings).dispatch("os.path.Whatever", "handle")

    assert _row_count(store) == 0
    assert spawner.commands == []


def test_dispatch_rejects_missing_entry_point(store, launcher, spawner, job_settings) -> None:
    with pytest.raises(MethodNotFound):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, "does_not_exist")

    assert _row_count(store) == 0
    assert spawner.commands == []


@pytest.mark.parametrize("priority", [0, 11, -3])
def test_dispatch_rejects_priority_out_of_range(store, launcher, job_settings, priority) -> None:
    with pytest.raises(InvalidArgument, match="priority"):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, priority=priority)

    assert _row_count(store) == 0


def test_dispatch_rejects_negative_delay(store, launcher, job_settings) -> None:
    with pytest.raises(InvalidArgument, match="delay_seconds"):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, delay_seconds=-1)

    assert _row_count(store) == 0


def test_dispatch_rejects_unserializable_arguments(store, launcher, job_settings) -> None:
    with pytest.raises(InvalidArgument, match="JSON-serializable"):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, "handle", [object()])

    assert _row_count(store) == 0


def test_invalid_argument_is_also_value_error(store, launcher, job_settings) -> None:
    with pytest.raises(ValueError):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, priority=42)


def test_initial_launch_failure_reaches_caller(store, spawner, job_settings) -> None:
    spawner.fail_with = "Executor command not found: python"
    launcher = ProcessLauncher(spawner=spawner, db_path=store.db_path)

    with pytest.raises(LaunchFailure, match="not found"):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO)

    [record] = store.list_records()
    assert record.status == JobStatus.PENDING


def test_concrete_allowed_job_scenario(
    store,
    launcher,
    spawner,
    tmp_path: Path,
    monkeypatch,
) -> None:
    package_dir = tmp_path / "modules"
    package_dir.mkdir()
    (package_dir / "Allowed.py").write_text(
        "class Job:\n    def handle(self, value):\n        return value\n",
        "utf-8",
    )
    monkeypatch.syspath_prepend(str(package_dir))
    settings = JobSettings(allowed_prefixes=("Allowed.",))

    job_id = JobDispatcher(store=store, launcher=launcher, settings=settings).dispatch(
        "Allowed.Job",
        "handle",
        [42],
    )

    assert store.get(status_key(job_id))["status"] == "pending"
    assert spawner.launched_job_ids == [job_id]


def test_run_background_job_helper_uses_settings(
    tmp_path: Path,
    spawner,
    monkeypatch,
) -> None:
    monkeypatch.setattr(dispatcher_module, "SubprocessSpawner", lambda: spawner)
    settings = Settings(
        db_path=tmp_path / "helper.db",
        jobs=JobSettings(allowed_prefixes=("jobrunner.jobs.builtin.",)),
    )

    job_id = run_background_job(ECHO, "handle", ["hello"], settings=settings)

    reader = SQLiteStatusStore(settings.db_path)
    try:
        record = load_record(reader, job_id)
    finally:
        reader.close()
    assert record.arguments == ["hello"]
    assert spawner.launched_job_ids == [job_id]
    assert spawner.envs[0]["JOBRUNNER_DB_PATH"] == str(settings.db_path)


def test_dispatch_keeps_values_from_one_shot_iterable(store, launcher, job_settings) -> None:
    job_id = _dispatcher(store, launcher, job_settings).dispatch(
        ECHO,
        "handle",
        (value for value in [1, 2]),
    )

    assert load_record(store, job_id).arguments == [1, 2]


def test_dispatch_rejects_string_arguments(store, launcher, job_settings) -> None:
    with pytest.raises(InvalidArgument, match="not a string"):
        _dispatcher(store, launcher, job_settings).dispatch(ECHO, "handle", "42")

    assert _row_count(store) == 0
