"""Message shaping: provider content adaptation and conversation helpers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from tldw_chat.types import ChatMessage, ContentPart, ImagePart, ImageUrl, TextPart

_TEXT_PART_PROVIDERS = frozenset({"google", "gemini"})
_IMAGE_DETAILS = ("auto", "low", "high")


def normalize_provider(value: str | None) -> str:
    return (value or "").strip().lower()


def requires_text_parts(provider: str | None = None, model: str | None = None) -> bool:
    """Whether user turns must be sent as part sequences instead of plain text.

    An explicit provider decides on its own; the model name is only consulted
    when no provider is given.
    """
    normalized = normalize_provider(provider)
    if normalized:
        return normalized in _TEXT_PART_PROVIDERS
    return "gemini" in (model or "").lower()


def adapt_messages_for_provider(
    messages: Sequence[ChatMessage],
    provider: str | None = None,
    model: str | None = None,
) -> list[ChatMessage]:
    """Return a new message list shaped for *provider*/*model*."""
    if not requires_text_parts(provider, model):
        return list(messages)

    adapted: list[ChatMessage] = []
    for message in messages:
        if message.role == "user" and isinstance(message.content, str):
            message = message.model_copy(update={"content": [TextPart(text=message.content)]})
        adapted.append(message)
    return adapted


def _part_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, TextPart):
        return part.text
    if isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str):
        return part["text"]
    return ""


def coerce_text_content(content: Any) -> str:
    """Flatten *content* to text; part lists are joined with single spaces."""
    if isinstance(content, str):
        return content
    if not isinstance(content, (list, tuple)):
        return ""
    return " ".join(text for text in (_part_text(part) for part in content) if text)


def _normalize_image_url(value: Any) -> ImageUrl | None:
    if isinstance(value, str):
        return ImageUrl(url=value)
    if isinstance(value, Mapping) and isinstance(value.get("url"), str):
        detail = value.get("detail")
        return ImageUrl(url=value["url"], detail=detail if detail in _IMAGE_DETAILS else None)
    return None


def normalize_content_part(part: Any) -> ContentPart | None:
    if isinstance(part, (TextPart, ImagePart)):
        return part
    if isinstance(part, str):
        return TextPart(text=part)
    if not isinstance(part, Mapping):
        return None
    if part.get("type") == "text" and isinstance(part.get("text"), str):
        return TextPart(text=part["text"])
    if part.get("type") == "image_url":
        image_url = _normalize_image_url(part.get("image_url"))
        return ImagePart(image_url=image_url) if image_url else None
    return None


def normalize_user_content(content: Any) -> str | list[ContentPart]:
    """Keep a part list only when it carries an image; otherwise flatten to text."""
    if isinstance(content, str):
        return content
    if not isinstance(content, (list, tuple)):
        return ""
    parts = [p for p in (normalize_content_part(item) for item in content) if p is not None]
    if not parts:
        return ""
    if not any(isinstance(p, ImagePart) for p in parts):
        return coerce_text_content(content)
    return parts


def to_chat_messages(
    records: Iterable[Mapping[str, Any] | ChatMessage],
    *,
    supports_multimodal: bool = False,
) -> list[ChatMessage]:
    """Convert loose role/content records into ``ChatMessage`` objects.

    Unknown roles are sent as user turns. User content keeps image parts only
    when *supports_multimodal* is set.
    """
    converted: list[ChatMessage] = []
    for record in records:
        if isinstance(record, ChatMessage):
            converted.append(record)
            continue

        role = record.get("role")
        content = record.get("content")
        if role == "system" or role == "assistant":
            converted.append(ChatMessage(role=role, content=coerce_text_content(content)))
        elif role == "tool":
            converted.append(
                ChatMessage(
                    role="tool",
                    content=coerce_text_content(content),
                    tool_call_id=record.get("tool_call_id"),
                )
            )
        elif role == "user" and supports_multimodal:
            converted.append(ChatMessage(role="user", content=normalize_user_content(content)))
        else:
            converted.append(ChatMessage(role="user", content=coerce_text_content(content)))
    return converted


def with_system_prompt(messages: Sequence[ChatMessage], system_prompt: str | None) -> list[ChatMessage]:
    """Prepend *system_prompt* unless the conversation already opens with one."""
    if not system_prompt or (messages and messages[0].role == "system"):
        return list(messages)
    return [ChatMessage(role="system", content=system_prompt), *messages]


def build_conversation(
    history: Sequence[ChatMessage],
    new_message: str,
    system_prompt: str | None = None,
) -> list[ChatMessage]:
    conversation: list[ChatMessage] = []
    if system_prompt:
        conversation.append(ChatMessage(role="system", content=system_prompt))
    conversation.extend(history)
    conversation.append(ChatMessage(role="user", content=new_message))
    return conversation


def format_response(content: str) -> str:
    return content.strip()
