"""Runtime settings for the Gemini clients, resolved from the environment.

Environment:
    - GEMINI_API_KEY (required unless passed explicitly)
    - GEMINI_MODEL (optional, defaults to gemini-2.0-flash)
    - GEMINI_BASE_URL (optional, defaults to https://generativelanguage.googleapis.com)
    - GEMINI_API_VERSION (optional, defaults to v1beta)
    - GEMINI_TIMEOUT_SECONDS (optional, defaults to 60)
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, SecretStr, field_validator

from gemini_api.errors import ConfigurationError

load_dotenv()

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_API_VERSION = "v1beta"
DEFAULT_TIMEOUT_SECONDS = 60.0


class Settings(BaseModel):
    """Connection settings shared by the blocking and asyncio clients."""

    api_key: SecretStr
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_version: str = DEFAULT_API_VERSION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_env(cls, api_key: str | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            api_key: Explicit API key; takes precedence over ``GEMINI_API_KEY``.

        Returns:
            Resolved settings.

        Raises:
            ConfigurationError: No API key was given or found in the environment.

        """
        key = api_key or os.environ.get("GEMINI_API_KEY")
        if not key:
            msg = "GEMINI_API_KEY is required."
            raise ConfigurationError(msg)
        return cls(
            api_key=SecretStr(key),
            model=os.environ.get("GEMINI_MODEL", DEFAULT_MODEL),
            base_url=os.environ.get("GEMINI_BASE_URL", DEFAULT_BASE_URL),
            api_version=os.environ.get("GEMINI_API_VERSION", DEFAULT_API_VERSION),
            timeout_seconds=float(os.environ.get("GEMINI_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )

    def url(self, path: str) -> str:
        """Return the absolute URL for an API path such as ``models``."""
        return f"{self.base_url}/{self.api_version}/{path}"

    def headers(self) -> dict[str, str]:
        """Return the headers sent with every request."""
        return {
            "x-goog-api-key": self.api_key.get_secret_value(),
            "Content-Type": "application/json",
        }
