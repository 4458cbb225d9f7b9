"""Rough token estimation and budget-based history truncation."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel

from tldw_chat.types import ChatMessage, TextPart

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


def _role(message: ChatMessage | Mapping[str, Any]) -> Any:
    if isinstance(message, Mapping):
        return message.get("role")
    return message.role


def _content(message: ChatMessage | Mapping[str, Any]) -> Any:
    if isinstance(message, Mapping):
        return message.get("content")
    return message.content


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str):
        return part["text"]
    return ""


def _content_chars(content: Any) -> int:
    if content is None:
        return 0
    if isinstance(content, str):
        return len(content)
    if isinstance(content, (list, tuple)):
        # every part contributes a separator, text or not
        return len(" ".join(_part_text(part) for part in content))
    if isinstance(content, BaseModel):
        content = content.model_dump(mode="json")
    try:
        return len(json.dumps(content, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        logger.debug("Content of type %s is not serializable; counting as empty", type(content).__name__)
        return 0


def estimate_tokens(messages: Sequence[ChatMessage | Mapping[str, Any]]) -> int:
    """Estimate the token cost of *messages* as ``ceil(chars / 4)``."""
    total_chars = sum(_content_chars(_content(m)) for m in messages)
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def truncate_messages(
    messages: Sequence[ChatMessage | Mapping[str, Any]],
    max_tokens: int,
    keep_system_prompt: bool = True,
) -> list[ChatMessage | Mapping[str, Any]]:
    """Keep the newest messages that fit in *max_tokens*.

    The walk goes newest to oldest and stops at the first message that does
    not fit; older messages are discarded even if they would fit. A leading
    system message is kept first when *keep_system_prompt* is set.
    """
    if not messages:
        return []

    head: list[ChatMessage | Mapping[str, Any]] = []
    used = 0
    start = 0
    if keep_system_prompt and _role(messages[0]) == "system":
        head.append(messages[0])
        used = estimate_tokens([messages[0]])
        start = 1

    kept: list[ChatMessage | Mapping[str, Any]] = []
    for message in reversed(messages[start:]):
        cost = estimate_tokens([message])
        if used + cost > max_tokens:
            break
        kept.append(message)
        used += cost

    kept.reverse()
    return head + kept
