"""Transport definitions for tldw_chat."""

from .base import ChatTransport
from .http import HttpChatTransport

__all__ = [
    "ChatTransport",
    "HttpChatTransport",
]
