"""Async chat client: request shaping, single calls and cancellable streams."""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable

from tldw_chat.accumulator import AccumulatorState, StreamingAccumulator
from tldw_chat.cancellation import CancellationToken
from tldw_chat.config import ClientSettings
from tldw_chat.errors import ChatClientError, ResponseShapeError, StreamStateError
from tldw_chat.extract import first_match, is_non_empty_text
from tldw_chat.messages import adapt_messages_for_provider, to_chat_messages, with_system_prompt
from tldw_chat.reasoning import ReasoningMerge, get_merge_strategy, merge_incremental
from tldw_chat.tools import normalize_tools
from tldw_chat.transport.base import ChatTransport
from tldw_chat.transport.http import HttpChatTransport
from tldw_chat.types import ChatMessage, ChatOptions, ChatRequest

logger = logging.getLogger(__name__)

MODEL_PREFIX = "tldw:"
ANSWER_PATHS = (
    ("choices", 0, "message", "content"),
    ("content",),
    ("text",),
)

MessagesInput = Sequence[ChatMessage | Mapping[str, Any]]
ChunkObserver = Callable[[Any], None]


@dataclass(frozen=True)
class StreamResult:
    """Final buffers handed to ``on_end`` callbacks."""

    text: str
    persist_text: str
    reasoning_time_ms: int | None
    cancelled: bool


EndCallback = Callable[[StreamResult], Any]


def extract_answer(data: Any) -> str:
    """Return the answer text from a completion body or raise ``ResponseShapeError``."""
    answer = first_match(data, ANSWER_PATHS, is_non_empty_text)
    if answer is None:
        raise ResponseShapeError()
    return answer


class StreamHandle:
    """A single cancellable streaming completion.

    Iterate it once with ``async for`` to receive visible tokens. The
    accumulated buffers stay readable after the stream ends.
    """

    def __init__(
        self,
        client: "ChatClient",
        messages: list[ChatMessage],
        options: ChatOptions,
        *,
        merge: ReasoningMerge,
        on_chunk: ChunkObserver | None = None,
        on_end: Sequence[EndCallback] = (),
    ) -> None:
        self._client = client
        self.messages = messages
        self.options = options
        self.token = CancellationToken()
        self.accumulator = StreamingAccumulator(merge)
        self._on_chunk = on_chunk
        self._on_end = tuple(on_end)
        self._consumed = False

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def state(self) -> AccumulatorState:
        return self.accumulator.state

    @property
    def full_text(self) -> str:
        return self.accumulator.full_text

    @property
    def persist_text(self) -> str:
        return self.accumulator.persist_text

    @property
    def reasoning_time_ms(self) -> int | None:
        return self.accumulator.reasoning_time_ms

    def cancel(self) -> None:
        self.token.cancel()

    def __aiter__(self) -> AsyncIterator[str]:
        if self._consumed:
            raise StreamStateError("stream handle can only be iterated once")
        self._consumed = True
        return self._client._run_stream(self)

    def _observe(self, chunk: Any) -> None:
        if self._on_chunk is not None:
            self._on_chunk(chunk)

    async def _notify_end(self) -> None:
        result = StreamResult(
            text=self.full_text,
            persist_text=self.persist_text,
            reasoning_time_ms=self.reasoning_time_ms,
            cancelled=self.cancelled,
        )
        for callback in self._on_end:
            try:
                outcome = callback(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception:
                logger.warning("Stream end callback failed", exc_info=True)


class ChatClient:
    """High-level client for a tldw-style chat completion server.

    Holds at most one active stream. Starting a new stream cancels the one
    before it; concurrent streams need separate client instances.
    """

    def __init__(
        self,
        transport: ChatTransport,
        *,
        reasoning_merge: ReasoningMerge = merge_incremental,
    ) -> None:
        self._transport = transport
        self._merge = reasoning_merge
        self._active: StreamHandle | None = None

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> "ChatClient":
        """Create a client backed by an ``HttpChatTransport``."""
        merge = get_merge_strategy(settings.reasoning_merge)
        return cls(HttpChatTransport(settings), reasoning_merge=merge)

    @property
    def active_stream(self) -> StreamHandle | None:
        return self._active

    async def aclose(self) -> None:
        self.cancel()
        aclose = getattr(self._transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def is_ready(self) -> bool:
        """Initialize the transport and report server health."""
        try:
            await self._transport.initialize()
            return await self._transport.health_check()
        except ChatClientError:
            logger.debug("Readiness check failed", exc_info=True)
            return False

    def build_request(self, messages: MessagesInput, options: ChatOptions, *, stream: bool) -> ChatRequest:
        """Shape *messages* and *options* into the canonical request."""
        model = options.model.strip()
        if model.startswith(MODEL_PREFIX):
            model = model[len(MODEL_PREFIX) :]

        chat_messages = to_chat_messages(messages, supports_multimodal=options.supports_multimodal)
        shaped = adapt_messages_for_provider(chat_messages, options.api_provider, model)
        shaped = with_system_prompt(shaped, options.system_prompt)

        tools = normalize_tools(options.tools)
        return ChatRequest(
            messages=shaped,
            model=model,
            stream=stream,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            top_p=options.top_p,
            frequency_penalty=options.frequency_penalty,
            presence_penalty=options.presence_penalty,
            reasoning_effort=options.reasoning_effort,
            tool_choice=options.tool_choice if tools else None,
            tools=tools,
            save_to_db=options.save_to_db,
            conversation_id=options.conversation_id,
            history_message_limit=options.history_message_limit,
            history_message_order=options.history_message_order,
            slash_command_injection_mode=options.slash_command_injection_mode,
            api_provider=options.api_provider,
            extra_headers=options.extra_headers,
            extra_body=options.extra_body,
            response_format={"type": "json_object"} if options.json_mode else None,
        )

    async def send(self, messages: MessagesInput, options: ChatOptions) -> str:
        """Execute a non-streaming completion and return the answer text."""
        try:
            await self._transport.initialize()
            request = self.build_request(messages, options, stream=False)
            data = await self._transport.call(request)
            return extract_answer(data)
        except Exception:
            logger.exception("Chat completion failed")
            raise

    def stream(
        self,
        messages: MessagesInput,
        options: ChatOptions,
        *,
        on_chunk: ChunkObserver | None = None,
        on_end: Sequence[EndCallback] = (),
    ) -> StreamHandle:
        """Start a streaming completion, cancelling any stream already active."""
        handle = StreamHandle(
            self,
            to_chat_messages(messages, supports_multimodal=options.supports_multimodal),
            options,
            merge=self._merge,
            on_chunk=on_chunk,
            on_end=on_end,
        )
        previous = self._swap_active(handle)
        if previous is not None:
            logger.debug("Cancelling previous stream in favour of a new one")
            previous.cancel()
        return handle

    def cancel(self, handle: StreamHandle | None = None) -> None:
        """Cancel *handle*, or the active stream; a no-op when nothing is active."""
        target = handle if handle is not None else self._active
        if target is None:
            return
        target.cancel()
        self._release(target)

    def _swap_active(self, handle: StreamHandle) -> StreamHandle | None:
        previous, self._active = self._active, handle
        return previous

    def _release(self, handle: StreamHandle) -> None:
        # only clear the slot if no newer stream has replaced this one
        if self._active is handle:
            self._active = None

    async def _run_stream(self, handle: StreamHandle) -> AsyncIterator[str]:
        chunks: AsyncIterator[Any] | None = None
        try:
            if handle.cancelled:
                return
            await self._transport.initialize()
            request = self.build_request(handle.messages, handle.options, stream=True)
            chunks = self._transport.open_stream(request, handle.token)
            async for chunk in chunks:
                if handle.cancelled:
                    logger.debug("Stream cancelled; dropping remaining chunks")
                    break
                handle._observe(chunk)
                token = handle.accumulator.feed(chunk)
                if token:
                    yield token
        except Exception:
            logger.exception("Stream completion failed")
            raise
        finally:
            self._release(handle)
            try:
                aclose = getattr(chunks, "aclose", None)
                if aclose is not None:
                    await aclose()
            finally:
                await handle._notify_end()
