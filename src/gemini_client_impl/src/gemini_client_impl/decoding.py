"""Conversion of raw response payloads into ``gemini_api`` types and errors."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from gemini_api.errors import ApiError, DecodeError
from gemini_api.types import ErrorDetail, ErrorEnvelope, GenerateContentResponse, ModelList

logger = logging.getLogger("gemini_client_impl.decoding")

_MAX_ERROR_TEXT = 500


def decode_response(payload: Any) -> GenerateContentResponse:  # noqa: ANN401
    """Validate one response object, raising ``ApiError`` for error envelopes.

    Used for both full responses and the elements of a streamed response array.
    """
    if isinstance(payload, dict) and "error" in payload:
        raise _envelope_error(payload, default_code=500)
    try:
        return GenerateContentResponse.model_validate(payload)
    except ValidationError as exc:
        msg = f"unexpected response shape ({exc.error_count()} validation error(s))"
        raise DecodeError(msg) from exc


def decode_model_list(payload: Any) -> ModelList:  # noqa: ANN401
    """Validate a model listing page."""
    try:
        return ModelList.model_validate(payload)
    except ValidationError as exc:
        msg = f"unexpected model list shape ({exc.error_count()} validation error(s))"
        raise DecodeError(msg) from exc


def parse_body(text: str) -> Any:  # noqa: ANN401
    """Parse a complete (non-streamed) JSON body."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"response body is not JSON: {exc.msg}"
        raise DecodeError(msg, position=exc.pos) from exc


def api_error(status_code: int, text: str) -> ApiError:
    """Build an ``ApiError`` from a non-2xx response body.

    Gemini wraps errors as ``{"error": {...}}``; streaming endpoints may wrap that envelope
    in a one-element array. Bodies that match neither keep the HTTP status and raw text.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        payload = None
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, dict) and "error" in payload:
        return _envelope_error(payload, default_code=status_code)
    message = text.strip()[:_MAX_ERROR_TEXT] or f"HTTP {status_code}"
    return ApiError(ErrorDetail(code=status_code, message=message))


def _envelope_error(payload: dict[str, Any], *, default_code: int) -> ApiError:
    """Validate an ``{"error": {...}}`` envelope, falling back to its text."""
    error = payload["error"]
    if isinstance(error, dict):
        try:
            envelope = ErrorEnvelope.model_validate({"error": {"code": default_code, **error}})
        except ValidationError:
            logger.debug("Error envelope did not match the expected shape: %s", error)
        else:
            return ApiError(envelope.error)
    return ApiError(ErrorDetail(code=default_code, message=str(error)[:_MAX_ERROR_TEXT]))
