"""Chat session keeping conversation history on top of any ``gemini_api.Client``."""

from __future__ import annotations

import json
import logging
from contextlib import closing
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from gemini_api.errors import DecodeError, GeminiError
from gemini_api.types import (
    Content,
    GenerateContentRequest,
    GenerateContentResponse,
    GenerationConfig,
    Part,
    Role,
    SafetySetting,
    Schema,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from gemini_api import Client

ModelT = TypeVar("ModelT", bound=BaseModel)

JSON_MIME_TYPE = "application/json"

logger = logging.getLogger("gemini_client_impl.chat")


class Chat:
    """Multi-turn conversation with a single model.

    Each successful turn appends the user input and the model's first candidate to
    :attr:`history`. A failed turn leaves the history unchanged.
    """

    def __init__(self, client: Client, model: str) -> None:
        """Create an empty chat session."""
        self._client = client
        self.model = model
        self.history: list[Content] = []
        self._system_instruction: str | None = None
        self._safety_settings: list[SafetySetting] = []
        self._config: GenerationConfig | None = None

    @property
    def config(self) -> GenerationConfig:
        """Generation config for subsequent turns, created on first access."""
        if self._config is None:
            self._config = GenerationConfig()
        return self._config

    def safety_settings(self, safety_settings: Sequence[SafetySetting]) -> Chat:
        """Replace the safety settings sent with every turn."""
        self._safety_settings = list(safety_settings)
        return self

    def system_instruction(self, instruction: str) -> Chat:
        """Set the system instruction sent with every turn."""
        self._system_instruction = instruction
        return self

    def to_json(self) -> Chat:
        """Ask the model to answer with JSON."""
        self.config.response_mime_type = JSON_MIME_TYPE
        return self

    def response_schema(self, schema: Schema) -> Chat:
        """Constrain JSON answers to ``schema`` (implies :meth:`to_json`)."""
        self.to_json()
        self.config.response_schema = schema
        return self

    def build_request(self) -> GenerateContentRequest:
        """Return the request for the current history and settings."""
        system = Content(parts=[Part.from_text(self._system_instruction)]) if self._system_instruction else None
        return GenerateContentRequest(
            contents=list(self.history),
            safety_settings=self._safety_settings or None,
            system_instruction=system,
            generation_config=self._config,
        )

    def generate_content(self) -> GenerateContentResponse:
        """Send the current history and record the reply."""
        response = self._client.generate_content(self.build_request(), self.model)
        if response.candidates and response.candidates[0].content is not None:
            reply = response.candidates[0].content
            self.history.append(Content(role=Role.MODEL, parts=reply.parts))
        return response

    def send_message(self, message: str) -> GenerateContentResponse:
        """Send a text turn and return the model's response."""
        return self.send_parts([Part.from_text(message)])

    def send_parts(self, parts: Sequence[Part]) -> GenerateContentResponse:
        """Send a multi-part turn and return the model's response."""
        self.history.append(Content(role=Role.USER, parts=list(parts)))
        try:
            return self.generate_content()
        except GeminiError:
            self.history.pop()
            raise

    def stream_message(self, message: str) -> Iterator[GenerateContentResponse]:
        """Send a text turn and yield the streamed partial responses.

        The assembled reply is appended to the history once the stream has completed. A
        stream that carried no parts leaves only the user turn.
        """
        self.history.append(Content.from_text(message))
        received: list[Part] = []
        completed = False
        try:
            with closing(self._client.stream_generate_content(self.build_request(), self.model)) as stream:
                for chunk in stream:
                    received.extend(chunk.parts)
                    yield chunk
            completed = True
        finally:
            if not completed:
                self.history.pop()
        if received:
            self.history.append(Content(role=Role.MODEL, parts=merge_text_parts(received)))

    def json(self, message: str, model_type: type[ModelT] | None = None) -> Any:  # noqa: ANN401
        """Send ``message`` in JSON mode and decode the reply.

        Args:
            message: User input.
            model_type: Optional pydantic model to validate the reply against.

        Returns:
            The decoded JSON value, or a ``model_type`` instance.

        Raises:
            DecodeError: The reply was not valid JSON (or did not match ``model_type``).

        """
        self.to_json()
        text = self.send_message(message).text
        try:
            if model_type is not None:
                return model_type.model_validate_json(text)
            return json.loads(text)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Model reply was not the requested JSON")
            msg = f"model reply is not valid JSON: {exc}"
            raise DecodeError(msg) from exc


def merge_text_parts(parts: Sequence[Part]) -> list[Part]:
    """Join consecutive plain-text parts, as produced by a streamed reply."""
    merged: list[Part] = []
    for part in parts:
        if merged and _is_plain_text(part) and _is_plain_text(merged[-1]):
            merged[-1] = Part.from_text((merged[-1].text or "") + (part.text or ""))
        else:
            merged.append(part)
    return merged


def _is_plain_text(part: Part) -> bool:
    return part.text is not None and not part.thought and part.model_fields_set <= {"text"}
