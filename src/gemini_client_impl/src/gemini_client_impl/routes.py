"""API routes and the ``generateContent`` request builder."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gemini_api.types import (
    Content,
    GenerateContentRequest,
    GenerationConfig,
    Part,
    SafetySetting,
    Tool,
    ToolConfig,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

GENERATE_CONTENT = "generateContent"
STREAM_GENERATE_CONTENT = "streamGenerateContent"

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def model_path(model: str) -> str:
    """Return the resource path for a model, accepting names with or without ``models/``."""
    return f"models/{model.removeprefix('models/')}"


def generate_content_path(model: str, *, stream: bool = False) -> str:
    """Return the path of the (streaming) content generation method for a model."""
    method = STREAM_GENERATE_CONTENT if stream else GENERATE_CONTENT
    return f"{model_path(model)}:{method}"


def models_query(page_size: int | None = None, page_token: str | None = None) -> dict[str, str | int]:
    """Build query parameters for the model listing, omitting unset values."""
    params: dict[str, str | int] = {}
    if page_size is not None:
        params["pageSize"] = page_size
    if page_token is not None:
        params["pageToken"] = page_token
    return params


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class GenerateContent:
    """Mutable builder pairing a model name with a ``generateContent`` request body.

    Every setter returns the builder so calls can be chained::

        request = GenerateContent("gemini-2.0-flash").system_instruction("Be brief.").message("Hi")
    """

    def __init__(self, model: str, body: GenerateContentRequest | None = None) -> None:
        """Create a builder for the given model."""
        self.model = model
        self.body = body or GenerateContentRequest()

    def config(self, config: GenerationConfig) -> GenerateContent:
        self.body.generation_config = config
        return self

    def safety_settings(self, safety_settings: Sequence[SafetySetting]) -> GenerateContent:
        self.body.safety_settings = list(safety_settings)
        return self

    def system_instruction(self, instruction: str) -> GenerateContent:
        self.body.system_instruction = Content(parts=[Part.from_text(instruction)])
        return self

    def tool_config(self, config: ToolConfig) -> GenerateContent:
        self.body.tool_config = config
        return self

    def contents(self, contents: Sequence[Content]) -> GenerateContent:
        self.body.contents = list(contents)
        return self

    def message(self, text: str) -> GenerateContent:
        """Append a user turn holding ``text``."""
        self.body.contents.append(Content.from_text(text))
        return self

    def tools(self, tools: Sequence[Tool]) -> GenerateContent:
        self.body.tools = list(tools)
        return self

    def path(self, *, stream: bool = False) -> str:
        return generate_content_path(self.model, stream=stream)
