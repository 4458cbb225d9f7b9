"""Cooperative cancellation signal shared by a stream and its transport."""

from __future__ import annotations

import asyncio


class CancellationToken:
    """One-shot cancellation flag checked at chunk boundaries."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
