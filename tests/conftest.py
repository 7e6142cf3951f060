"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from jobrunner.config import JobSettings
from jobrunner.jobs.errors import LaunchFailure
from jobrunner.jobs.launcher import ProcessLauncher, SpawnHandle
from jobrunner.jobs.store import SQLiteStatusStore

BUILTIN_PREFIX = "jobrunner.jobs.builtin."


@dataclass
class RecordingSpawner:
    """Spawner double that records commands instead of starting processes."""

    commands: list[list[str]] = field(default_factory=list)
    envs: list[dict[str, str] | None] = field(default_factory=list)
    fail_with: str | None = None

    def spawn(self, command: Sequence[str], *, env: dict[str, str] | None = None) -> SpawnHandle:
        if self.fail_with is not None:
            raise LaunchFailure(self.fail_with)
        self.commands.append(list(command))
        self.envs.append(env)
        return SpawnHandle(pid=None, mode="recorded")

    @property
    def launched_job_ids(self) -> list[str]:
        return [command[-1] for command in self.commands]


@dataclass
class SleepRecorder:
    calls: list[float] = field(default_factory=list)

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[SQLiteStatusStore]:
    repository = SQLiteStatusStore(tmp_path / "jobs.db")
    repository.init_schema()
    yield repository
    repository.close()


@pytest.fixture()
def spawner() -> RecordingSpawner:
    return RecordingSpawner()


@pytest.fixture()
def launcher(spawner: RecordingSpawner, store: SQLiteStatusStore) -> ProcessLauncher:
    return ProcessLauncher(spawner=spawner, db_path=store.db_path, python_executable="python")


@pytest.fixture()
def job_settings() -> JobSettings:
    return JobSettings(allowed_prefixes=(BUILTIN_PREFIX,), max_retries=3, retry_delay_seconds=5)


@pytest.fixture()
def sleeper() -> SleepRecorder:
    return SleepRecorder()
