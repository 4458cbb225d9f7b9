"""Ordered field-extraction helpers for duck-typed provider payloads.

Upstream payloads arrive as plain dicts, pydantic models or SDK objects, and
the same logical field can sit at several places. Each location is described
as a path; callers try an ordered list of paths and keep the first value that
satisfies a predicate.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

Path = tuple[str | int, ...]

_MISSING = object()


def lookup(obj: Any, path: Path) -> Any:
    """Follow *path* through mappings, attributes and list indices.

    Returns ``None`` as soon as a step cannot be resolved.
    """
    current = obj
    for step in path:
        if current is None:
            return None
        if isinstance(step, int):
            if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                current = current[step] if -len(current) <= step < len(current) else None
            else:
                return None
        elif isinstance(current, Mapping):
            current = current.get(step)
        else:
            value = getattr(current, step, _MISSING)
            current = None if value is _MISSING else value
    return current


def first_match(
    obj: Any,
    paths: Sequence[Path],
    accept: Callable[[Any], bool],
) -> Any:
    """Return the first value along *paths* accepted by *accept*, else ``None``."""
    for path in paths:
        value = lookup(obj, path)
        if accept(value):
            return value
    return None


def is_record(value: Any) -> bool:
    """True for plain mapping-like values (JSON objects)."""
    return isinstance(value, Mapping)


def is_text(value: Any) -> bool:
    return isinstance(value, str)


def is_non_empty_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""
