"""Error taxonomy for the LLM call layer."""

from typing import Any


class LLMError(Exception):
    """Base class for provider call failures.

    Args:
        message: Human readable description
        status: HTTP status code when the failure came from a response
        headers: Response headers when available
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        headers: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.headers = dict(headers or {})


class ClientNotInitialized(LLMError):
    """Provider configuration is missing or invalid."""


class RateLimited(LLMError):
    """Provider answered with HTTP 429."""

    def __init__(self, message: str, headers: dict[str, Any] | None = None):
        super().__init__(message, status=429, headers=headers)


class InvalidResponseStructure(LLMError):
    """Model output is malformed or does not match the expected schema."""


class TransportFailure(LLMError):
    """Network or provider-side failure other than rate limiting."""


class TokenizerInitError(LLMError):
    """Token encoding could not be resolved for the configured model."""
