"""Reasoning-content merge strategies.

Providers disagree on whether ``reasoning_content`` carries only the newest
text (incremental) or everything produced so far (cumulative). A strategy
takes the current buffer and the chunk's reasoning field and returns the new
buffer; the accumulator applies it to both of its text buffers.
"""

from __future__ import annotations

from typing import Callable

from tldw_chat.errors import ConfigurationError

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

ReasoningMerge = Callable[[str, str], str]


def _strip_open_tag(text: str) -> str:
    return text.replace(THINK_OPEN, "", 1)


def merge_incremental(text: str, reasoning: str) -> str:
    """Append *reasoning* to the buffer, keeping a single leading ``<think>``."""
    return f"{THINK_OPEN}{_strip_open_tag(text)}{reasoning}"


def merge_cumulative(text: str, reasoning: str) -> str:
    """Replace the buffer body when *reasoning* repeats it as a prefix."""
    existing = _strip_open_tag(text)
    if reasoning.startswith(existing):
        return f"{THINK_OPEN}{reasoning}"
    return f"{THINK_OPEN}{existing}{reasoning}"


_STRATEGIES: dict[str, ReasoningMerge] = {
    "incremental": merge_incremental,
    "cumulative": merge_cumulative,
}


def get_merge_strategy(name: str) -> ReasoningMerge:
    """Return the merge strategy registered under *name*."""
    try:
        return _STRATEGIES[name.strip().lower()]
    except KeyError as exc:
        known = ", ".join(sorted(_STRATEGIES))
        raise ConfigurationError(f"Unknown reasoning merge strategy {name!r} (known: {known})") from exc
