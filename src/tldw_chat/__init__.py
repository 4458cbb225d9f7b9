"""Streaming chat-completion client for tldw-style servers."""

from .budget import estimate_tokens, truncate_messages
from .client import ChatClient, StreamHandle, StreamResult
from .config import ClientSettings
from .types import ChatMessage, ChatOptions, ChatRequest, ToolDefinition

__all__ = [
    "ChatClient",
    "ChatMessage",
    "ChatOptions",
    "ChatRequest",
    "ClientSettings",
    "StreamHandle",
    "StreamResult",
    "ToolDefinition",
    "estimate_tokens",
    "truncate_messages",
]
