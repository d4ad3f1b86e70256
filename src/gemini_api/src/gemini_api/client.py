"""Abstract interfaces for the Gemini generative-language API."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from gemini_api.types import GenerateContentRequest, GenerateContentResponse, ModelList

__all__ = ["AsyncClient", "Client", "get_async_client", "get_client"]


class Client(ABC):
    """The contract for blocking Gemini clients."""

    @abstractmethod
    def generate_content(
        self,
        request: GenerateContentRequest,
        model: str | None = None,
    ) -> GenerateContentResponse:
        """Generate a complete response in a single round trip.

        Args:
            request: Request body (contents, tools, configuration).
            model: Model name; falls back to the implementation's default model.

        Returns:
            The decoded response.

        """
        raise NotImplementedError

    @abstractmethod
    def stream_generate_content(
        self,
        request: GenerateContentRequest,
        model: str | None = None,
    ) -> Iterator[GenerateContentResponse]:
        """Generate a response delivered as incremental chunks.

        Args:
            request: Request body (contents, tools, configuration).
            model: Model name; falls back to the implementation's default model.

        Returns:
            Lazy, forward-only iterator of partial responses in arrival order. The iterator
            has a ``close()`` method that releases the connection.

        """
        raise NotImplementedError

    @abstractmethod
    def list_models(self, page_size: int | None = None, page_token: str | None = None) -> ModelList:
        """List available models, one page at a time."""
        raise NotImplementedError


class AsyncClient(ABC):
    """The contract for asyncio Gemini clients."""

    @abstractmethod
    async def generate_content(
        self,
        request: GenerateContentRequest,
        model: str | None = None,
    ) -> GenerateContentResponse:
        """Async counterpart of :meth:`Client.generate_content`."""
        raise NotImplementedError

    @abstractmethod
    async def stream_generate_content(
        self,
        request: GenerateContentRequest,
        model: str | None = None,
    ) -> AsyncIterator[GenerateContentResponse]:
        """Async counterpart of :meth:`Client.stream_generate_content`."""
        raise NotImplementedError

    @abstractmethod
    async def list_models(self, page_size: int | None = None, page_token: str | None = None) -> ModelList:
        """Async counterpart of :meth:`Client.list_models`."""
        raise NotImplementedError


def get_client() -> Client:
    """Return the default blocking client implementation.

    Returns:
        Client implementation.

    """
    raise NotImplementedError


def get_async_client() -> AsyncClient:
    """Return the default asyncio client implementation.

    Returns:
        AsyncClient implementation.

    """
    raise NotImplementedError
