"""Tests for the Chat session history handling."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from gemini_client_impl.chat import Chat, merge_text_parts
from pydantic import BaseModel

from gemini_api import Client
from gemini_api.errors import ApiError, DecodeError, TransportError
from gemini_api.types import (
    Candidate,
    Content,
    ErrorDetail,
    FunctionCall,
    GenerateContentRequest,
    GenerateContentResponse,
    ModelList,
    Part,
    Role,
    Schema,
    SchemaType,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


def _reply(*texts: str) -> GenerateContentResponse:
    parts = [Part.from_text(text) for text in texts]
    return GenerateContentResponse(candidates=[Candidate(content=Content(role=Role.MODEL, parts=parts))])


class _FakeClient(Client):
    """Client returning scripted replies and recording each request."""

    def __init__(self, *replies: GenerateContentResponse | Exception, chunks: list[object] | None = None) -> None:
        self.requests: list[tuple[GenerateContentRequest, str | None]] = []
        self._replies = list(replies)
        self._chunks = chunks or []

    def generate_content(self, request: GenerateContentRequest, model: str | None = None) -> GenerateContentResponse:
        self.requests.append((request.model_copy(deep=True), model))
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def stream_generate_content(
        self,
        request: GenerateContentRequest,
        model: str | None = None,
    ) -> Iterator[GenerateContentResponse]:
        self.requests.append((request.model_copy(deep=True), model))
        return _ClosingIterator(self._chunks)

    def list_models(self, page_size: int | None = None, page_token: str | None = None) -> ModelList:
        return ModelList()


class _ClosingIterator:
    """Iterator over scripted chunks that records ``close()`` and raises scripted errors."""

    def __init__(self, chunks: list[object]) -> None:
        self._chunks = iter(chunks)
        self.closed = False

    def __iter__(self) -> _ClosingIterator:
        return self

    def __next__(self) -> GenerateContentResponse:
        item = next(self._chunks)
        if isinstance(item, Exception):
            raise item
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self.closed = True


def test_send_message_records_both_turns() -> None:
    """A successful turn appends the user input and the model reply."""
    # ARRANGE
    client = _FakeClient(_reply("Hi!"), _reply("Paris."))
    chat = Chat(client, "gemini-2.0-flash").system_instruction("Be brief.")

    # ACT
    chat.send_message("Hello")
    result = chat.send_message("Capital of France?")

    # ASSERT
    assert result.text == "Paris."
    assert [(turn.role, turn.parts[0].text) for turn in chat.history] == [
        (Role.USER, "Hello"),
        (Role.MODEL, "Hi!"),
        (Role.USER, "Capital of France?"),
        (Role.MODEL, "Paris."),
    ]
    second_request, model = client.requests[1]
    assert model == "gemini-2.0-flash"
    assert len(second_request.contents) == 3
    assert second_request.system_instruction is not None
    assert second_request.system_instruction.parts[0].text == "Be brief."


def test_failed_turn_leaves_history_unchanged() -> None:
    """Errors roll back the user turn so the conversation can be retried."""
    # ARRANGE
    error = ApiError(ErrorDetail(code=500, message="Internal error", status="INTERNAL"))
    chat = Chat(_FakeClient(_reply("Hi!"), error), "gemini-2.0-flash")
    chat.send_message("Hello")

    # ACT
    with pytest.raises(ApiError):
        chat.send_message("Still there?")

    # ASSERT
    assert len(chat.history) == 2


def test_stream_message_merges_reply_into_history() -> None:
    """Streamed text parts are joined into a single model turn."""
    # ARRANGE
    client = _FakeClient(chunks=[_reply("Once "), _reply("upon "), _reply("a time")])
    chat = Chat(client, "gemini-2.0-flash")

    # ACT
    texts = [chunk.text for chunk in chat.stream_message("Tell a story")]

    # ASSERT
    assert texts == ["Once ", "upon ", "a time"]
    assert len(chat.history) == 2
    assert chat.history[1].role is Role.MODEL
    assert [part.text for part in chat.history[1].parts] == ["Once upon a time"]


def test_stream_without_parts_adds_no_model_turn() -> None:
    """A stream that delivers no parts records the user turn only."""
    # ARRANGE
    client = _FakeClient(chunks=[GenerateContentResponse(), GenerateContentResponse()])
    chat = Chat(client, "gemini-2.0-flash")

    # ACT
    chunks = list(chat.stream_message("Anything?"))

    # ASSERT
    assert len(chunks) == 2
    assert len(chat.history) == 1
    assert chat.history[0].role is Role.USER


def test_stream_message_failure_rolls_back() -> None:
    # ARRANGE
    client = _FakeClient(chunks=[_reply("Once "), TransportError("connection reset")])
    chat = Chat(client, "gemini-2.0-flash")

    # ACT
    with pytest.raises(TransportError):
        list(chat.stream_message("Tell a story"))

    # ASSERT
    assert chat.history == []


def test_stream_message_abandoned_early_rolls_back() -> None:
    """Closing the generator before the stream completes discards the turn."""
    # ARRANGE
    client = _FakeClient(chunks=[_reply("Once "), _reply("upon")])
    chat = Chat(client, "gemini-2.0-flash")
    messages = chat.stream_message("Tell a story")

    # ACT
    next(messages)
    messages.close()

    # ASSERT
    assert chat.history == []


def test_json_mode_validates_reply() -> None:
    """json() switches to JSON output and validates against a pydantic model."""

    # ARRANGE
    class Capital(BaseModel):
        country: str
        city: str

    schema = Schema(
        schema_type=SchemaType.OBJECT,
        properties={"country": Schema(schema_type=SchemaType.STRING), "city": Schema(schema_type=SchemaType.STRING)},
    )
    client = _FakeClient(_reply('{"country": "France", "city": "Paris"}'))
    chat = Chat(client, "gemini-2.0-flash").response_schema(schema)

    # ACT
    result = chat.json("Capital of France?", Capital)

    # ASSERT
    assert result == Capital(country="France", city="Paris")
    request, _ = client.requests[0]
    assert request.generation_config is not None
    assert request.generation_config.response_mime_type == "application/json"
    assert request.to_dict()["generationConfig"]["responseSchema"]["type"] == "object"


def test_json_mode_rejects_non_json_reply() -> None:
    chat = Chat(_FakeClient(_reply("Sure! Paris.")), "gemini-2.0-flash")

    with pytest.raises(DecodeError):
        chat.json("Capital of France?")


def test_merge_text_parts_keeps_non_text_parts() -> None:
    # ARRANGE
    call = Part(function_call=FunctionCall(name="lookup"))
    parts = [Part.from_text("a"), Part.from_text("b"), call, Part.from_text("c"), Part(text="hmm", thought=True)]

    # ACT
    merged = merge_text_parts(parts)

    # ASSERT
    assert [part.text for part in merged] == ["ab", None, "c", "hmm"]
    assert merged[1] is call
