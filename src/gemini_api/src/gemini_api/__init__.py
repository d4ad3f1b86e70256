"""Public export surface for ``gemini_api``."""

from gemini_api import types
from gemini_api.client import AsyncClient, Client, get_async_client, get_client
from gemini_api.errors import (
    ApiError,
    ConfigurationError,
    DecodeError,
    GeminiError,
    IncompleteStreamError,
    TransportError,
)
from gemini_api.types import (
    Content,
    GenerateContentRequest,
    GenerateContentResponse,
    GenerationConfig,
    ModelList,
    Part,
    Role,
)

__all__ = [
    "ApiError",
    "AsyncClient",
    "Client",
    "ConfigurationError",
    "Content",
    "DecodeError",
    "GeminiError",
    "GenerateContentRequest",
    "GenerateContentResponse",
    "GenerationConfig",
    "IncompleteStreamError",
    "ModelList",
    "Part",
    "Role",
    "TransportError",
    "get_async_client",
    "get_client",
    "types",
]
