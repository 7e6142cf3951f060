"""Deterministic demo jobs for smoke runs and integration tests."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


class EchoJob:
    """Log the arguments it was called with."""

    def handle(self, *args: object) -> list[object]:
        logger.info("EchoJob called with %r", args)
        return list(args)


class FlakyJob:
    """Fail the first `failures` calls, counting calls in a file.

    The counter lives on disk because every attempt runs in a new process.
    """

    def handle(self, counter_path: str, failures: int) -> int:
        path = Path(counter_path)
        calls = _load_calls(path) + 1
        path.write_text(json.dumps({"calls": calls}), "utf-8")
        if calls <= failures:
            raise RuntimeError(f"FlakyJob planned failure {calls}/{failures}")
        return calls


class AlwaysFailJob:
    def handle(self, message: str = "AlwaysFailJob failed") -> None:
        raise RuntimeError(message)


class ExitJob:
    """Terminate the interpreter the way a careless script would."""

    def handle(self, code: int = 3) -> None:
        sys.exit(code)


def _load_calls(path: Path) -> int:
    if not path.exists():
        return 0
    try:
        payload = json.loads(path.read_text("utf-8"))
    except json.JSONDecodeError:
        return 0
    if isinstance(payload, dict) and isinstance(payload.get("calls"), int):
        return payload["calls"]
    return 0
