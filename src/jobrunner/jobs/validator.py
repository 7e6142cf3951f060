"""Allow-list and entry point checks for dispatch targets."""

from __future__ import annotations

import importlib
import inspect
from collections.abc import Callable, Sequence
from typing import Any

from jobrunner.jobs.errors import ClassNotAllowed, MethodNotFound


def is_target_allowed(target: str, allowed_prefixes: Sequence[str]) -> bool:
    """Case-sensitive prefix match against the configured allow-list."""

    return any(target.startswith(prefix) for prefix in allowed_prefixes)


def validate_target(target: str, entry_point: str, allowed_prefixes: Sequence[str]) -> None:
    """Raise ClassNotAllowed or MethodNotFound; no record or process is touched."""

    if not is_target_allowed(target, allowed_prefixes):
        raise ClassNotAllowed(target)

    target_obj = import_target(target, entry_point)
    member = getattr(target_obj, entry_point, None)
    if entry_point.startswith("_") or member is None or not callable(member):
        raise MethodNotFound(target, entry_point)


def import_target(target: str, entry_point: str) -> Any:
    """Import `package.module.ClassName` and return the class object."""

    module_name, _, attr_name = target.rpartition(".")
    if not module_name or not attr_name:
        raise MethodNotFound(target, entry_point, reason="target is not a dotted path")
    try:
        module = importlib.import_module(module_name)
    except ImportError as error:
        raise MethodNotFound(target, entry_point, reason=str(error)) from error
    try:
        return getattr(module, attr_name)
    except AttributeError as error:
        raise MethodNotFound(
            target,
            entry_point,
            reason=f"module {module_name!r} has no attribute {attr_name!r}",
        ) from error


def resolve_entry_point(target: str, entry_point: str) -> Callable[..., Any]:
    """Return the callable to invoke; classes are instantiated without arguments."""

    target_obj = import_target(target, entry_point)
    instance = target_obj() if inspect.isclass(target_obj) else target_obj
    member = getattr(instance, entry_point, None)
    if member is None or not callable(member):
        raise MethodNotFound(target, entry_point)
    return member
