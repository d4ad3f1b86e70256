"""Asyncio Gemini client built on ``httpx``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

import gemini_api
from gemini_api import AsyncClient
from gemini_api.errors import TransportError
from gemini_client_impl.config import Settings
from gemini_client_impl.decoding import api_error, decode_model_list, decode_response, parse_body
from gemini_client_impl.routes import GenerateContent, models_query
from gemini_client_impl.stream import COMPACT_THRESHOLD, AsyncResponseStream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from gemini_api.types import GenerateContentRequest, GenerateContentResponse, Model, ModelList

logger = logging.getLogger("gemini_client_impl.async")


class AsyncGeminiClient(AsyncClient):
    """Concrete gemini_api.AsyncClient over an ``httpx.AsyncClient``.

    Reads the same environment as :class:`~gemini_client_impl.gemini_impl.GeminiClient`.
    Pass ``http_client`` to share a connection pool or to inject a mock transport.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        compact_threshold: int | None = COMPACT_THRESHOLD,
    ) -> None:
        """Initialize the client, resolving the API key and defaults from the environment."""
        self._settings = settings or Settings.from_env(api_key)
        self._http = http_client or httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        self._http.headers.update(self._settings.headers())
        self._compact_threshold = compact_threshold

    @property
    def model(self) -> str:
        return self._settings.model

    def request(self, model: str | None = None) -> GenerateContent:
        """Return an empty request builder for ``model`` (or the default model)."""
        return GenerateContent(model or self.model)

    async def generate_content(
        self,
        request: GenerateContentRequest | GenerateContent,
        model: str | None = None,
    ) -> GenerateContentResponse:
        """Generate a complete response."""
        builder = self._builder(request, model)
        response = await self._send("POST", builder.path(), json=builder.body.to_dict())
        return decode_response(parse_body(response.text))

    async def stream_generate_content(
        self,
        request: GenerateContentRequest | GenerateContent,
        model: str | None = None,
    ) -> AsyncResponseStream[GenerateContentResponse]:
        """Open a streamed generation and return an async iterator over partial responses.

        Use the returned stream with ``async with`` to release the connection early.
        """
        builder = self._builder(request, model)
        response = await self._send("POST", builder.path(stream=True), json=builder.body.to_dict(), stream=True)
        logger.info("Stream opened for %s", builder.model)
        return AsyncResponseStream(
            response.aiter_bytes(),
            decode_response,
            on_close=response.aclose,
            transport_errors=(httpx.HTTPError, httpx.StreamError),
            compact_threshold=self._compact_threshold,
        )

    async def list_models(self, page_size: int | None = None, page_token: str | None = None) -> ModelList:
        """Return one page of the model listing."""
        response = await self._send("GET", "models", params=models_query(page_size, page_token))
        return decode_model_list(parse_body(response.text))

    async def iter_models(self, page_size: int | None = None) -> AsyncIterator[Model]:
        """Yield every available model, following page tokens."""
        page_token: str | None = None
        while True:
            page = await self.list_models(page_size=page_size, page_token=page_token)
            for model in page.models:
                yield model
            if not page.next_page_token:
                return
            page_token = page.next_page_token

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> AsyncGeminiClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _builder(self, request: GenerateContentRequest | GenerateContent, model: str | None) -> GenerateContent:
        if isinstance(request, GenerateContent):
            return GenerateContent(model or request.model, request.body)
        return GenerateContent(model or self.model, request)

    async def _send(self, method: str, path: str, *, stream: bool = False, **kwargs: Any) -> httpx.Response:
        """Issue a request and raise ``ApiError`` for non-2xx answers."""
        logger.info("%s %s", method, path)
        request = self._http.build_request(method, self._settings.url(path), **kwargs)
        try:
            response = await self._http.send(request, stream=stream)
            if response.is_error:
                await response.aread()
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc
        if response.is_error:
            await response.aclose()
            error = api_error(response.status_code, response.text)
            logger.warning("%s %s returned %s", method, path, error)
            raise error
        return response


def get_async_client_impl() -> AsyncGeminiClient:
    """Return a new AsyncGeminiClient using env defaults."""
    return AsyncGeminiClient()


def register() -> None:
    """Bind the asyncio client factory into gemini_api.get_async_client."""
    gemini_api.get_async_client = get_async_client_impl
