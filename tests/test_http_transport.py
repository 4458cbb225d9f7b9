import asyncio
import json
import unittest
from collections.abc import Callable

import httpx

from tldw_chat.cancellation import CancellationToken
from tldw_chat.client import ChatClient
from tldw_chat.config import ClientSettings
from tldw_chat.errors import TransportError
from tldw_chat.transport.http import HttpChatTransport
from tldw_chat.types import ChatMessage, ChatOptions, ChatRequest

SSE_BODY = (
    'data: {"choices":[{"delta":{"reasoning_content":"plan"}}]}\n\n'
    "event: ping\n\n"
    "data: not-json\n\n"
    'data: {"choices":[{"delta":{"content":"He"}}]}\n\n'
    'data: {"choices":[{"delta":{"content":"llo"},"finish_reason":"stop"}]}\n\n'
    "data: [DONE]\n\n"
    'data: {"choices":[{"delta":{"content":"ignored"}}]}\n\n'
)


def make_transport(
    handler: Callable[[httpx.Request], httpx.Response],
    **settings_overrides,
) -> HttpChatTransport:
    settings = ClientSettings(base_url="http://tldw.test", api_key="secret", **settings_overrides)
    client = httpx.AsyncClient(base_url=settings.base_url, transport=httpx.MockTransport(handler))
    return HttpChatTransport(settings, client=client)


def make_request(**overrides) -> ChatRequest:
    return ChatRequest(messages=[ChatMessage(role="user", content="hi")], model="m", **overrides)


class HttpTransportTests(unittest.TestCase):
    def test_call_posts_payload_and_headers(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

        async def scenario() -> object:
            transport = make_transport(handler)
            try:
                return await transport.call(make_request(extra_headers={"X-Trace": "t1"}, extra_body={"a": 1}))
            finally:
                await transport.aclose()

        data = asyncio.run(scenario())
        self.assertEqual(data, {"choices": [{"message": {"content": "ok"}}]})

        request = captured[0]
        self.assertEqual(request.url.path, "/api/v1/chat/completions")
        self.assertEqual(request.headers["Authorization"], "Bearer secret")
        self.assertEqual(request.headers["X-Trace"], "t1")
        body = json.loads(request.content)
        self.assertNotIn("extra_headers", body)
        self.assertEqual(body["extra_body"], {"a": 1})
        self.assertFalse(body["stream"])

    def test_call_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="bad gateway")

        async def scenario() -> None:
            transport = make_transport(handler)
            try:
                await transport.call(make_request())
            finally:
                await transport.aclose()

        with self.assertRaises(TransportError) as ctx:
            asyncio.run(scenario())
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIn("bad gateway", str(ctx.exception))

    def test_network_error_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async def scenario() -> None:
            transport = make_transport(handler)
            try:
                await transport.call(make_request())
            finally:
                await transport.aclose()

        with self.assertRaises(TransportError) as ctx:
            asyncio.run(scenario())
        self.assertIsInstance(ctx.exception.__cause__, httpx.ConnectError)
        self.assertIsNone(ctx.exception.status_code)

    def test_stream_parses_sse(self) -> None:
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, text=SSE_BODY, headers={"Content-Type": "text/event-stream"})

        async def scenario() -> list[object]:
            transport = make_transport(handler)
            try:
                return [c async for c in transport.open_stream(make_request(), CancellationToken())]
            finally:
                await transport.aclose()

        chunks = asyncio.run(scenario())
        self.assertEqual(len(chunks), 3)
        self.assertTrue(json.loads(captured[0].content)["stream"])

    def test_stream_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="unauthorized")

        async def scenario() -> None:
            transport = make_transport(handler)
            try:
                async for _ in transport.open_stream(make_request(), CancellationToken()):
                    pass
            finally:
                await transport.aclose()

        with self.assertRaises(TransportError) as ctx:
            asyncio.run(scenario())
        self.assertEqual(ctx.exception.status_code, 401)

    def test_stream_error_with_undecodable_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, content=b"\xff\xfe upstream")

        async def scenario() -> None:
            transport = make_transport(handler)
            try:
                async for _ in transport.open_stream(make_request(), CancellationToken()):
                    pass
            finally:
                await transport.aclose()

        with self.assertRaises(TransportError) as ctx:
            asyncio.run(scenario())
        self.assertEqual(ctx.exception.status_code, 502)
        self.assertIn("upstream", str(ctx.exception))

    def test_stream_stops_when_cancelled(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=SSE_BODY)

        async def scenario() -> list[object]:
            transport = make_transport(handler)
            token = CancellationToken()
            chunks = []
            try:
                async for chunk in transport.open_stream(make_request(), token):
                    chunks.append(chunk)
                    token.cancel()
            finally:
                await transport.aclose()
            return chunks

        self.assertEqual(len(asyncio.run(scenario())), 1)

    def test_health_check(self) -> None:
        def healthy(request: httpx.Request) -> httpx.Response:
            self.assertEqual(request.url.path, "/api/v1/health")
            return httpx.Response(200, json={"status": "ok"})

        def down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        async def check(handler: Callable[[httpx.Request], httpx.Response]) -> bool:
            transport = make_transport(handler)
            try:
                return await transport.health_check()
            finally:
                await transport.aclose()

        self.assertTrue(asyncio.run(check(healthy)))
        self.assertFalse(asyncio.run(check(down)))
        self.assertFalse(asyncio.run(check(lambda request: httpx.Response(503))))


class ClientOverHttpTests(unittest.TestCase):
    def test_stream_end_to_end(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=SSE_BODY)

        async def scenario() -> tuple[list[str], str]:
            client = ChatClient(make_transport(handler))
            try:
                handle = client.stream([{"role": "user", "content": "hi"}], ChatOptions(model="m"))
                tokens = [t async for t in handle]
                return tokens, handle.persist_text
            finally:
                await client.aclose()

        tokens, persisted = asyncio.run(scenario())
        self.assertEqual(tokens, ["He", "llo"])
        self.assertEqual(persisted, "<think>plan</think>Hello")


if __name__ == "__main__":
    unittest.main()
