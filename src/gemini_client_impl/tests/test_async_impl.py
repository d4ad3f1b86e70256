"""Tests for the asyncio Gemini client using httpx's mock transport."""

from __future__ import annotations

import importlib
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from gemini_client_impl.async_impl import AsyncGeminiClient, get_async_client_impl, register
from gemini_client_impl.config import Settings

import gemini_api
from gemini_api.errors import ApiError, IncompleteStreamError, TransportError
from gemini_api.types import Content, GenerateContentRequest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

BASE = "https://generativelanguage.googleapis.com/v1beta"


def _reply(text: str) -> dict[str, Any]:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class _ChunkedBody(httpx.AsyncByteStream):
    """Async response body delivered in fixed-size chunks."""

    def __init__(self, data: bytes, size: int) -> None:
        self._data = data
        self._size = size
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for start in range(0, len(self._data), self._size):
            yield self._data[start : start + self._size]

    async def aclose(self) -> None:
        self.closed = True


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> AsyncGeminiClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AsyncGeminiClient(settings=Settings(api_key="test-key"), http_client=http_client)


@pytest.mark.asyncio
async def test_generate_content_posts_request() -> None:
    """The async client posts the serialized request with the API key header."""
    # ARRANGE
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_reply("pong"))

    client = _client(handler)

    # ACT
    async with client:
        result = await client.generate_content(GenerateContentRequest(contents=[Content.from_text("ping")]))

    # ASSERT
    assert result.text == "pong"
    [request] = seen
    assert str(request.url) == f"{BASE}/models/gemini-2.0-flash:generateContent"
    assert request.headers["x-goog-api-key"] == "test-key"
    assert json.loads(request.content) == {"contents": [{"role": "user", "parts": [{"text": "ping"}]}]}


@pytest.mark.asyncio
async def test_stream_generate_content_yields_chunks() -> None:
    """Streamed chunks of any size decode into ordered partial responses."""
    # ARRANGE
    body = _ChunkedBody(json.dumps([_reply("a"), _reply("b"), _reply("c")]).encode(), size=5)

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith(":streamGenerateContent")
        return httpx.Response(200, stream=body)

    client = _client(handler)

    # ACT
    stream = await client.stream_generate_content(GenerateContentRequest(), model="gemini-2.5-flash")
    texts = [chunk.text async for chunk in stream]

    # ASSERT
    assert texts == ["a", "b", "c"]
    assert stream.closed
    assert body.closed


@pytest.mark.asyncio
async def test_truncated_stream_raises_incomplete() -> None:
    body = _ChunkedBody(json.dumps([_reply("a"), _reply("b")]).encode()[:-20], size=16)
    client = _client(lambda _request: httpx.Response(200, stream=body))

    stream = await client.stream_generate_content(GenerateContentRequest())

    assert (await anext(stream)).text == "a"
    with pytest.raises(IncompleteStreamError):
        await anext(stream)
    assert body.closed


@pytest.mark.asyncio
async def test_error_status_raises_api_error() -> None:
    """Error envelopes become ApiError for both plain and streamed calls."""
    # ARRANGE
    envelope = {"error": {"code": 404, "message": "models/nope is not found", "status": "NOT_FOUND"}}
    client = _client(lambda _request: httpx.Response(404, json=envelope))

    # ACT
    with pytest.raises(ApiError) as plain:
        await client.generate_content(GenerateContentRequest(), model="nope")
    with pytest.raises(ApiError) as streamed:
        await client.stream_generate_content(GenerateContentRequest(), model="nope")

    # ASSERT
    assert plain.value.status == "NOT_FOUND"
    assert streamed.value.code == 404


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        msg = "connection refused"
        raise httpx.ConnectError(msg, request=request)

    client = _client(handler)

    with pytest.raises(TransportError, match="connection refused"):
        await client.generate_content(GenerateContentRequest())


@pytest.mark.asyncio
async def test_iter_models_follows_page_tokens() -> None:
    # ARRANGE
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.params.get("pageToken") == "next":
            return httpx.Response(200, json={"models": [{"name": "models/b"}]})
        return httpx.Response(200, json={"models": [{"name": "models/a"}], "nextPageToken": "next"})

    client = _client(handler)

    # ACT
    names = [model.name async for model in client.iter_models(page_size=1)]

    # ASSERT
    assert names == ["models/a", "models/b"]


def test_register_binds_async_factory(monkeypatch: pytest.MonkeyPatch) -> None:
    """Register should replace gemini_api.get_async_client with the httpx factory."""
    # ARRANGE
    client_protocol = importlib.import_module("gemini_api.client")
    monkeypatch.setattr(gemini_api, "get_async_client", client_protocol.get_async_client, raising=False)

    # ACT
    register()

    # ASSERT
    assert gemini_api.get_async_client is get_async_client_impl
