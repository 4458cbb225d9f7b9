"""httpx transport for tldw-style chat completion servers."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from tldw_chat.cancellation import CancellationToken
from tldw_chat.config import ClientSettings
from tldw_chat.errors import TransportError
from tldw_chat.transport.base import ChatTransport
from tldw_chat.types import ChatRequest


class HttpChatTransport(ChatTransport):
    """Minimal async wrapper for the chat completions and health endpoints."""

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(base_url=settings.base_url, timeout=settings.timeout_s)
        self._headers = {"Content-Type": "application/json", **settings.default_headers}
        if settings.api_key:
            self._headers["Authorization"] = f"Bearer {settings.api_key}"

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(self._settings.health_path, headers=self._headers)
        except httpx.HTTPError as exc:
            self._logger.debug("Health check failed: %s", exc)
            return False
        return response.status_code < 400

    async def call(self, req: ChatRequest) -> Any:
        """POST the request and return the decoded JSON body."""
        try:
            response = await self._client.post(
                self._settings.chat_path,
                headers=self._request_headers(req),
                json=req.to_payload(include_headers=False),
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"chat request failed: {exc}") from exc
        return self._json_or_error(response)

    def open_stream(self, req: ChatRequest, cancel_token: CancellationToken) -> AsyncIterator[Any]:
        """Return an async iterator over decoded SSE chunks."""

        async def _gen() -> AsyncIterator[Any]:
            payload = req.to_payload(include_headers=False)
            payload["stream"] = True

            try:
                async with self._client.stream(
                    "POST",
                    self._settings.chat_path,
                    headers=self._request_headers(req),
                    json=payload,
                ) as response:
                    if response.status_code >= 400:
                        body = await response.aread()
                        raise TransportError(
                            body.decode(errors="replace") or response.reason_phrase,
                            status_code=response.status_code,
                        )

                    async for line in response.aiter_lines():
                        if cancel_token.cancelled:
                            self._logger.debug("Stream cancelled; closing response")
                            return
                        if not line:
                            continue
                        line = line.strip()

                        # Some servers send "event:" lines. Ignore them.
                        if not line.startswith("data:"):
                            continue

                        data_str = line[len("data:") :].strip()
                        if data_str == "[DONE]":
                            return

                        try:
                            event = json.loads(data_str)
                        except json.JSONDecodeError:
                            self._logger.debug("Skipping non-JSON streaming chunk: %s", data_str)
                            continue

                        yield event
            except httpx.HTTPError as exc:
                raise TransportError(f"chat stream failed: {exc}") from exc

        return _gen()

    def _request_headers(self, req: ChatRequest) -> dict[str, str]:
        if not req.extra_headers:
            return self._headers
        extra = {str(k): str(v) for k, v in req.extra_headers.items() if v is not None}
        return {**self._headers, **extra}

    @staticmethod
    def _json_or_error(response: httpx.Response) -> Any:
        if response.status_code >= 400:
            raise TransportError(
                response.text or response.reason_phrase,
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError:
            # Non-JSON bodies are left for the caller's shape checks
            return None
