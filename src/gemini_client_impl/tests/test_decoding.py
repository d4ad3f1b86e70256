"""Tests for payload decoding, error envelopes and runtime settings."""

from __future__ import annotations

import pytest
from gemini_client_impl.config import Settings
from gemini_client_impl.decoding import api_error, decode_model_list, decode_response, parse_body

from gemini_api.errors import ApiError, ConfigurationError, DecodeError


def test_decode_response_validates_payload() -> None:
    payload = {
        "candidates": [{"content": {"role": "model", "parts": [{"text": "hi"}]}, "finishReason": "STOP"}],
        "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 1, "totalTokenCount": 4},
    }

    response = decode_response(payload)

    assert response.text == "hi"
    assert response.usage_metadata is not None
    assert response.usage_metadata.total_token_count == 4


def test_decode_response_rejects_wrong_shape() -> None:
    """Payloads that do not match the response model raise DecodeError."""
    with pytest.raises(DecodeError, match="unexpected response shape"):
        decode_response({"candidates": "nope"})
    with pytest.raises(DecodeError):
        decode_response([1, 2])


def test_decode_response_raises_embedded_error() -> None:
    with pytest.raises(ApiError) as info:
        decode_response({"error": {"message": "stream aborted", "status": "INTERNAL"}})

    assert info.value.code == 500
    assert info.value.status == "INTERNAL"


def test_decode_model_list_rejects_wrong_shape() -> None:
    with pytest.raises(DecodeError):
        decode_model_list({"models": [{"displayName": "no name"}]})


def test_parse_body_reports_position() -> None:
    with pytest.raises(DecodeError) as info:
        parse_body('{"a": }')

    assert info.value.position == 6


@pytest.mark.parametrize(
    ("text", "code", "status", "message"),
    [
        ('{"error": {"code": 403, "message": "denied", "status": "PERMISSION_DENIED"}}', 403, "PERMISSION_DENIED", "denied"),
        ('[{"error": {"code": 429, "message": "slow down", "status": "RESOURCE_EXHAUSTED"}}]', 429, "RESOURCE_EXHAUSTED", "slow down"),
        ('{"error": "plain string"}', 400, None, "plain string"),
        ("upstream connect error", 502, None, "upstream connect error"),
        ("", 504, None, "HTTP 504"),
    ],
)
def test_api_error_from_response_body(text: str, code: int, status: str | None, message: str) -> None:
    """Error bodies are parsed into ApiError whatever their shape."""
    error = api_error(code, text)

    assert error.code == code
    assert error.status == status
    assert error.detail.message == message


def test_api_error_keeps_envelope_details() -> None:
    text = '{"error": {"code": 400, "message": "bad key", "details": [{"reason": "API_KEY_INVALID"}]}}'

    error = api_error(400, text)

    assert error.detail.details == [{"reason": "API_KEY_INVALID"}]


def test_api_error_with_misshapen_envelope_keeps_text() -> None:
    """An envelope that fails validation keeps the HTTP status and the raw error object."""
    error = api_error(500, '{"error": {"code": "not a number", "message": "boom"}}')

    assert error.code == 500
    assert "boom" in error.detail.message


def test_api_error_truncates_raw_text() -> None:
    error = api_error(500, "x" * 10_000)

    assert len(error.detail.message) == 500


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # ARRANGE
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")
    monkeypatch.setenv("GEMINI_API_VERSION", "v1")
    monkeypatch.setenv("GEMINI_TIMEOUT_SECONDS", "5")

    # ACT
    settings = Settings.from_env()

    # ASSERT
    assert settings.url("models") == "https://generativelanguage.googleapis.com/v1/models"
    assert settings.timeout_seconds == 5.0
    assert settings.headers()["x-goog-api-key"] == "env-key"
    assert "env-key" not in repr(settings)


def test_explicit_key_wins_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")

    assert Settings.from_env("explicit").api_key.get_secret_value() == "explicit"


def test_missing_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError):
        Settings.from_env()
