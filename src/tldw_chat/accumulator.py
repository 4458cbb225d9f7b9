"""Stream chunk accumulation with reasoning-block handling."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

from tldw_chat.extract import first_match, is_non_empty_text, is_text
from tldw_chat.reasoning import THINK_CLOSE, ReasoningMerge, merge_incremental

TOKEN_PATHS = (
    ("content",),
    ("choices", 0, "delta", "content"),
)
REASONING_PATHS = (
    ("choices", 0, "delta", "reasoning_content"),
    ("additional_kwargs", "reasoning_content"),
    ("reasoning_content",),
)


def extract_token(chunk: Any) -> str:
    """Visible text carried by *chunk*, or ``""``."""
    if isinstance(chunk, str):
        return chunk
    token = first_match(chunk, TOKEN_PATHS, is_text)
    return token or ""


def extract_reasoning(chunk: Any) -> str:
    """Reasoning text carried by *chunk*, or ``""``."""
    if isinstance(chunk, str):
        return ""
    return first_match(chunk, REASONING_PATHS, is_non_empty_text) or ""


@dataclass
class AccumulatorState:
    full_text: str = ""
    persist_text: str = ""
    in_reasoning_block: bool = False


class StreamingAccumulator:
    """Fold transport chunks into a render buffer and a persistence buffer.

    ``full_text`` is what a live view shows (reasoning, closing marker and
    answer). ``persist_text`` is what gets stored once the stream ends. A
    reasoning block opens on the first chunk with reasoning content and closes,
    with a single ``</think>`` marker, on the first later chunk without it.
    """

    def __init__(
        self,
        merge: ReasoningMerge = merge_incremental,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._merge = merge
        self._clock = clock
        self.state = AccumulatorState()
        self._reasoning_started: float | None = None
        self._reasoning_ended: float | None = None

    @property
    def full_text(self) -> str:
        return self.state.full_text

    @property
    def persist_text(self) -> str:
        return self.state.persist_text

    @property
    def in_reasoning_block(self) -> bool:
        return self.state.in_reasoning_block

    @property
    def reasoning_time_ms(self) -> int | None:
        """Milliseconds between the first reasoning chunk and the closing marker."""
        if self._reasoning_started is None or self._reasoning_ended is None:
            return None
        return int(round((self._reasoning_ended - self._reasoning_started) * 1000))

    def feed(self, chunk: Any) -> str:
        """Consume one chunk and return its visible token."""
        state = self.state
        token = extract_token(chunk)
        reasoning = extract_reasoning(chunk)

        if reasoning:
            state.full_text = self._merge(state.full_text, reasoning)
            state.persist_text = self._merge(state.persist_text, reasoning)
            if not state.in_reasoning_block and self._reasoning_started is None:
                self._reasoning_started = self._clock()
            state.in_reasoning_block = True
        elif state.in_reasoning_block:
            state.full_text += THINK_CLOSE
            state.persist_text += THINK_CLOSE
            state.in_reasoning_block = False
            if self._reasoning_ended is None:
                self._reasoning_ended = self._clock()

        if token:
            state.full_text += token
            state.persist_text += token
        return token
