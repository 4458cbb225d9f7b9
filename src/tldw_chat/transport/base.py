"""Transport interface consumed by the chat client."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from tldw_chat.cancellation import CancellationToken
from tldw_chat.types import ChatRequest


class ChatTransport(ABC):
    """Abstract request/response and chunked-stream transport."""

    async def initialize(self) -> None:
        """Bootstrap the session before the first call. No-op by default."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return whether the server reports itself healthy."""
        raise NotImplementedError

    @abstractmethod
    async def call(self, req: ChatRequest) -> Any:
        """Execute a single chat completion and return the decoded body."""
        raise NotImplementedError

    @abstractmethod
    def open_stream(self, req: ChatRequest, cancel_token: CancellationToken) -> AsyncIterator[Any]:
        """Return an async iterator of decoded stream chunks."""
        raise NotImplementedError
