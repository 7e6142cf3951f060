"""Detached process launcher for executor attempts."""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from jobrunner.jobs.errors import LaunchFailure

logger = logging.getLogger(__name__)

EXECUTOR_MODULE = "jobrunner.main"
EXECUTOR_SUBCOMMAND = ("jobs", "run")


@dataclass(slots=True)
class SpawnHandle:
    """What is known about a started process; the launcher never waits on it."""

    pid: int | None
    mode: str


class ProcessSpawner(Protocol):
    """Fire-and-forget process starter."""

    def spawn(self, command: Sequence[str], *, env: dict[str, str] | None = None) -> SpawnHandle:
        """Start command detached from the caller and return immediately."""


class SubprocessSpawner:
    """Start detached processes with the platform-native idiom."""

    def __init__(self, *, os_name: str | None = None) -> None:
        self.os_name = os_name or os.name

    def spawn(self, command: Sequence[str], *, env: dict[str, str] | None = None) -> SpawnHandle:
        argv = list(command)
        if not argv:
            raise LaunchFailure("Executor command is empty.")
        if _resolve_executable(argv[0]) is None:
            raise LaunchFailure(f"Executor command not found: {argv[0]}")
        if self.os_name == "nt":
            return _spawn_windows_detached(argv, env=env)
        return _spawn_posix_background(argv, env=env)


class ProcessLauncher:
    """Start one executor attempt process for a job id."""

    def __init__(
        self,
        *,
        spawner: ProcessSpawner,
        db_path: Path | None = None,
        python_executable: str | None = None,
    ) -> None:
        self.spawner = spawner
        self.db_path = db_path
        self.python_executable = python_executable or sys.executable

    def build_command(self, job_id: str) -> list[str]:
        return [self.python_executable, "-m", EXECUTOR_MODULE, *EXECUTOR_SUBCOMMAND, job_id]

    def launch(self, job_id: str) -> SpawnHandle:
        """Spawn the executor for job_id; raises LaunchFailure when nothing started."""

        env = os.environ.copy()
        if self.db_path is not None:
            env["JOBRUNNER_DB_PATH"] = str(self.db_path)
        try:
            handle = self.spawner.spawn(self.build_command(job_id), env=env)
        except OSError as error:
            raise LaunchFailure(f"Executor process failed to start: {error}") from error
        logger.debug("Launched job %s (mode=%s pid=%s)", job_id, handle.mode, handle.pid)
        return handle


def _resolve_executable(head: str) -> str | None:
    if os.path.sep in head or (os.path.altsep and os.path.altsep in head):
        path = Path(head)
        return str(path) if path.is_file() and os.access(path, os.X_OK) else None
    return shutil.which(head)


def _spawn_windows_detached(argv: list[str], *, env: dict[str, str] | None) -> SpawnHandle:
    creationflags = getattr(subprocess, "DETACHED_PROCESS", 0x00000008) | getattr(
        subprocess,
        "CREATE_NEW_PROCESS_GROUP",
        0x00000200,
    )
    try:
        process = subprocess.Popen(  # noqa: S603
            argv,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            close_fds=True,
            creationflags=creationflags,
        )
    except FileNotFoundError as error:
        raise LaunchFailure(f"Executor command not found: {argv[0]}") from error
    except OSError as error:
        raise LaunchFailure(f"Executor process failed to start: {error}") from error
    return SpawnHandle(pid=process.pid, mode="windows_detached")


def _spawn_posix_background(argv: list[str], *, env: dict[str, str] | None) -> SpawnHandle:
    shell_command = f"{shlex.join(argv)} > /dev/null 2>&1 & echo $!"
    try:
        result = subprocess.run(  # noqa: S602
            shell_command,
            shell=True,
            env=env,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as error:
        raise LaunchFailure(f"Shell failed to start executor: {error}") from error
    if result.returncode != 0:
        raise LaunchFailure(
            f"Shell failed to background executor (exit={result.returncode}): "
            f"{result.stderr.strip()}",
        )
    pid_text = result.stdout.strip().splitlines()[-1] if result.stdout.strip() else ""
    return SpawnHandle(pid=int(pid_text) if pid_text.isdigit() else None, mode="posix_shell")
