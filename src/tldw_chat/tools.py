"""Canonicalization of heterogeneous tool/function definitions."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from tldw_chat.extract import first_match, is_non_empty_text, is_record, is_text
from tldw_chat.types import DEFAULT_TOOL_PARAMETERS, ToolDefinition, ToolFunction

logger = logging.getLogger(__name__)

TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_DISALLOWED_RUN = re.compile(r"[^A-Za-z0-9_-]+")
_MAX_NAME_LENGTH = 64

# Ordered lookup locations; the first acceptable value wins.
NAME_PATHS = (("name",), ("function", "name"))
DESCRIPTION_PATHS = (("description",), ("function", "description"))
PARAMETER_PATHS = (
    ("function", "parameters"),
    ("parameters",),
    ("input_schema",),
    ("json_schema",),
)


def sanitize_tool_name(name: str) -> str | None:
    """Coerce *name* into the server's tool-name alphabet, or ``None`` if impossible."""
    trimmed = name.strip()
    if not trimmed:
        return None
    if TOOL_NAME_PATTERN.match(trimmed):
        return trimmed

    sanitized = _DISALLOWED_RUN.sub("_", trimmed).strip("_")
    sanitized = sanitized[:_MAX_NAME_LENGTH]
    return sanitized if TOOL_NAME_PATTERN.match(sanitized) else None


def resolve_name(record: Any) -> str | None:
    return first_match(record, NAME_PATHS, is_non_empty_text)


def resolve_description(record: Any) -> str | None:
    return first_match(record, DESCRIPTION_PATHS, is_text)


def resolve_parameters(record: Any) -> dict[str, Any]:
    schema = first_match(record, PARAMETER_PATHS, is_record)
    if schema is None:
        return dict(DEFAULT_TOOL_PARAMETERS)
    return dict(schema)


def _is_tool_record(value: Any) -> bool:
    # ToolDefinition and other pydantic/SDK objects expose fields as attributes
    return is_record(value) or (value is not None and not isinstance(value, (str, bytes, list, tuple)))


def normalize_tools(records: Iterable[Any] | None) -> list[ToolDefinition] | None:
    """Return canonical, uniquely named tool definitions.

    Records without a usable name are skipped, and later records whose
    sanitized name collides with an earlier one are dropped. Returns ``None``
    when nothing survives so callers can omit tool calling entirely.
    """
    if not records:
        return None

    seen: set[str] = set()
    normalized: list[ToolDefinition] = []
    for record in records:
        if not _is_tool_record(record):
            logger.debug("Skipping non-record tool entry: %r", record)
            continue

        raw_name = resolve_name(record)
        name = sanitize_tool_name(raw_name) if raw_name else None
        if name is None:
            logger.debug("Skipping tool with unusable name: %r", raw_name)
            continue
        if name in seen:
            logger.debug("Skipping duplicate tool name: %s", name)
            continue

        if raw_name != name:
            logger.warning(
                "Tool name %r normalized to %r to satisfy server schema.", raw_name, name
            )
        seen.add(name)

        normalized.append(
            ToolDefinition(
                function=ToolFunction(
                    name=name,
                    description=resolve_description(record),
                    parameters=resolve_parameters(record),
                )
            )
        )

    return normalized or None
