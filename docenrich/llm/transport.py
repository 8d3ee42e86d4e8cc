"""HTTP transport for OpenAI-compatible chat completion endpoints."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from .errors import RateLimited, TransportFailure
from .response import ChatResponse

CHAT_COMPLETIONS_PATH = "/chat/completions"


@dataclass
class ChatTransport:
    """Posts chat completion payloads to one endpoint.

    Args:
        base_url: Endpoint root, the completions path is appended
        headers: Authentication and content headers
        params: Query parameters sent with every request
        timeout_s: Per-request timeout
    """

    base_url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    timeout_s: int = 120

    @property
    def url(self) -> str:
        return self.base_url.rstrip("/") + CHAT_COMPLETIONS_PATH

    def post_chat(self, payload: dict[str, Any]) -> ChatResponse:
        """Execute a chat completion request.

        Returns:
            The HTTP exchange with parsed JSON body

        Raises:
            RateLimited: For HTTP 429
            TransportFailure: For other HTTP errors, network errors and
                non-JSON bodies
        """
        started_at = datetime.now(timezone.utc)
        try:
            response = requests.post(
                self.url,
                headers=self.headers,
                params=self.params or None,
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.Timeout as e:
            raise TransportFailure(
                f"Request timed out (timeout: {self.timeout_s}s)"
            ) from e
        except requests.RequestException as e:
            raise TransportFailure(f"Request to {self.url} failed: {e}") from e
        completed_at = datetime.now(timezone.utc)

        headers = {str(k).lower(): str(v) for k, v in (response.headers or {}).items()}

        if response.status_code == 429:
            raise RateLimited(
                f"Rate limit exceeded (HTTP {response.status_code}). Please retry later.",
                headers=headers,
            )
        if response.status_code in (401, 403):
            raise TransportFailure(
                f"Authentication failed (HTTP {response.status_code}). Check the API key.",
                status=response.status_code,
                headers=headers,
            )
        if response.status_code >= 400:
            raise TransportFailure(
                f"Provider returned HTTP {response.status_code}: {response.text[:200]}",
                status=response.status_code,
                headers=headers,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TransportFailure(
                "Provider returned a non-JSON body",
                status=response.status_code,
                headers=headers,
            ) from e

        return ChatResponse(
            status_code=response.status_code,
            headers=headers,
            body=body if isinstance(body, dict) else {},
            started_at=started_at,
            completed_at=completed_at,
        )
