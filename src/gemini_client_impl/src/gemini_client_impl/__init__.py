"""Public exports for the Gemini client implementation package."""

import gemini_api
from gemini_client_impl.async_impl import AsyncGeminiClient
from gemini_client_impl.async_impl import register as _register_async_client
from gemini_client_impl.chat import Chat
from gemini_client_impl.gemini_impl import GeminiClient
from gemini_client_impl.gemini_impl import register as _register_client
from gemini_client_impl.routes import GenerateContent
from gemini_client_impl.stream import ArrayStreamParser, AsyncResponseStream, ResponseStream

__all__ = [
    "ArrayStreamParser",
    "AsyncGeminiClient",
    "AsyncResponseStream",
    "Chat",
    "GeminiClient",
    "GenerateContent",
    "ResponseStream",
    "chat",
    "register",
]


def register() -> None:
    """Register the blocking and asyncio Gemini client factories."""
    _register_client()
    _register_async_client()


def chat(model: str | None = None) -> Chat:
    """Start a chat session on the default client."""
    client = gemini_api.get_client()
    return Chat(client, model or client.model)  # type: ignore[attr-defined]


register()
