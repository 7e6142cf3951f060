"""Runtime configuration for job dispatch and retries."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_ALLOWED_PREFIXES: tuple[str, ...] = (
    "app.jobs.",
    "app.services.",
    "jobrunner.jobs.builtin.",
)


@dataclass(slots=True)
class JobSettings:
    """Allow-list and retry policy shared by dispatcher and retry controller."""

    allowed_prefixes: tuple[str, ...] = DEFAULT_ALLOWED_PREFIXES
    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    log_dir: Path | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".jobrunner.db")
    sqlite_busy_timeout_ms: int = 5_000
    jobs: JobSettings = field(default_factory=JobSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        log_dir = os.getenv("JOBRUNNER_LOG_DIR", "").strip()
        return cls(
            db_path=db_path or Path(os.getenv("JOBRUNNER_DB_PATH", ".jobrunner.db")),
            sqlite_busy_timeout_ms=int(os.getenv("JOBRUNNER_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            jobs=JobSettings(
                allowed_prefixes=_collect_allowed_prefixes(),
                max_retries=int(os.getenv("JOBRUNNER_MAX_RETRIES", "3")),
                retry_delay_seconds=float(os.getenv("JOBRUNNER_RETRY_DELAY_SECONDS", "5")),
                log_dir=Path(log_dir) if log_dir else None,
            ),
        )

    def validate_for_jobs(self) -> None:
        """Raise configuration error if retry policy or allow-list is unusable."""

        if self.jobs.max_retries < 1:
            raise ValueError("JOBRUNNER_MAX_RETRIES must be >= 1.")
        if self.jobs.retry_delay_seconds < 0:
            raise ValueError("JOBRUNNER_RETRY_DELAY_SECONDS must be >= 0.")
        if not self.jobs.allowed_prefixes:
            raise ValueError(
                "At least one allowed target prefix is required. "
                "Set JOBRUNNER_ALLOWED_TARGETS.",
            )
        if self.sqlite_busy_timeout_ms <= 0:
            raise ValueError("JOBRUNNER_SQLITE_BUSY_TIMEOUT_MS must be > 0.")


def _collect_allowed_prefixes() -> tuple[str, ...]:
    raw = os.getenv("JOBRUNNER_ALLOWED_TARGETS")
    if raw is None:
        return DEFAULT_ALLOWED_PREFIXES
    return _normalize_prefixes(raw.split(","))


def _normalize_prefixes(values: list[str]) -> tuple[str, ...]:
    deduped: list[str] = []
    seen: set[str] = set()
    for value in values:
        normalized = value.strip()
        if not normalized:
            continue
        if normalized in seen:
            continue
        seen.add(normalized)
        deduped.append(normalized)
    return tuple(deduped)
