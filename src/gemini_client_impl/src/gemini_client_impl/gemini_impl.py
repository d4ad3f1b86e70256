"""Gemini Client Implementation.

Concrete gemini_api.Client backed by the Gemini REST API over ``requests``. Resolves the API
key from the environment, serializes ``gemini_api.types`` request models and decodes
responses, including the incrementally delivered ``streamGenerateContent`` array.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import requests

import gemini_api
from gemini_api import Client
from gemini_api.errors import TransportError
from gemini_client_impl.chat import Chat
from gemini_client_impl.config import Settings
from gemini_client_impl.decoding import api_error, decode_model_list, decode_response, parse_body
from gemini_client_impl.routes import GenerateContent, models_query
from gemini_client_impl.stream import COMPACT_THRESHOLD, ResponseStream

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from gemini_api.types import GenerateContentRequest, GenerateContentResponse, Model, ModelList

logger = logging.getLogger("gemini_client_impl")

# ---------------------------------------------------------------------------
# Client implementation
# ---------------------------------------------------------------------------


class GeminiClient(Client):
    """Concrete gemini_api.Client that talks to the Gemini REST API.

    Authentication:
        - GEMINI_API_KEY (required unless ``api_key`` is given)
        - GEMINI_MODEL (optional, defaults to gemini-2.0-flash)

    Attributes:
        _settings: Resolved connection settings.
        _session: ``requests`` session carrying the auth headers.
        _compact_threshold: Buffer compaction threshold for streamed responses.

    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        settings: Settings | None = None,
        session: requests.Session | None = None,
        compact_threshold: int | None = COMPACT_THRESHOLD,
    ) -> None:
        """Initialize the client, resolving the API key and defaults from the environment."""
        self._settings = settings or Settings.from_env(api_key)
        self._session = session or requests.Session()
        self._session.headers.update(self._settings.headers())
        self._compact_threshold = compact_threshold

    @property
    def model(self) -> str:
        """Default model used when a call does not name one."""
        return self._settings.model

    def request(self, model: str | None = None) -> GenerateContent:
        """Return an empty request builder for ``model`` (or the default model)."""
        return GenerateContent(model or self.model)

    def chat(self, model: str | None = None) -> Chat:
        """Start a chat session that keeps its own history."""
        return Chat(self, model or self.model)

    def generate_content(
        self,
        request: GenerateContentRequest | GenerateContent,
        model: str | None = None,
    ) -> GenerateContentResponse:
        """Generate a complete response.

        Args:
            request: Request body, or a builder that also names the model.
            model: Model override; defaults to the builder's model or the configured model.

        Returns:
            The decoded response.

        Raises:
            ApiError: The server rejected the request.
            TransportError: The HTTP request failed.
            DecodeError: The body was not a valid response.

        """
        builder = self._builder(request, model)
        response = self._send("POST", builder.path(), json=builder.body.to_dict())
        return decode_response(parse_body(response.text))

    def stream_generate_content(
        self,
        request: GenerateContentRequest | GenerateContent,
        model: str | None = None,
    ) -> ResponseStream[GenerateContentResponse]:
        """Generate a response delivered as a stream of partial responses.

        The HTTP response stays open until the returned stream is exhausted or closed; use it
        as a context manager to release the connection early.

        Args:
            request: Request body, or a builder that also names the model.
            model: Model override; defaults to the builder's model or the configured model.

        Returns:
            Iterator yielding each partial response as soon as it has fully arrived.

        """
        builder = self._builder(request, model)
        response = self._send("POST", builder.path(stream=True), json=builder.body.to_dict(), stream=True)
        logger.info("Stream opened for %s", builder.model)
        return ResponseStream(
            response.iter_content(chunk_size=None),
            decode_response,
            on_close=response.close,
            transport_errors=(requests.RequestException,),
            compact_threshold=self._compact_threshold,
        )

    def list_models(self, page_size: int | None = None, page_token: str | None = None) -> ModelList:
        """Return one page of the model listing."""
        response = self._send("GET", "models", params=models_query(page_size, page_token))
        return decode_model_list(parse_body(response.text))

    def iter_models(self, page_size: int | None = None) -> Iterator[Model]:
        """Yield every available model, following page tokens."""
        page_token: str | None = None
        while True:
            page = self.list_models(page_size=page_size, page_token=page_token)
            yield from page.models
            if not page.next_page_token:
                return
            page_token = page.next_page_token

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    def __enter__(self) -> GeminiClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _builder(self, request: GenerateContentRequest | GenerateContent, model: str | None) -> GenerateContent:
        if isinstance(request, GenerateContent):
            return GenerateContent(model or request.model, request.body)
        return GenerateContent(model or self.model, request)

    def _send(self, method: str, path: str, *, stream: bool = False, **kwargs: Any) -> requests.Response:
        """Issue a request and raise ``ApiError`` for non-2xx answers."""
        logger.info("%s %s", method, path)
        try:
            response = self._session.request(
                method,
                self._settings.url(path),
                timeout=self._settings.timeout_seconds,
                stream=stream,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc
        if not response.ok:
            try:
                error = api_error(response.status_code, response.text)
            finally:
                response.close()
            logger.warning("%s %s returned %s", method, path, error)
            raise error
        return response


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def get_client_impl() -> GeminiClient:
    """Return a new GeminiClient using env defaults."""
    return GeminiClient()


# ---------------------------------------------------------------------------
# Factory registration
# ---------------------------------------------------------------------------


def register() -> None:
    """Bind the Gemini client factory into gemini_api.get_client."""
    gemini_api.get_client = get_client_impl
