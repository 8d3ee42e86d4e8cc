"""Ollama provider implementation (OpenAI-compatible API of a local server)."""

from ..response import ChatResponse
from ..transport import ChatTransport
from .azure import usage_headers
from .base import ChatProvider, require

DEFAULT_API_URL = "http://localhost:11434"
# Ollama ignores the key but OpenAI-compatible clients must send one
PLACEHOLDER_API_KEY = "ollama"


class OllamaProvider(ChatProvider):
    """Local Ollama server."""

    id = "ollama"

    def validate_config(self) -> None:
        require(self.settings, "model")

    def build_transport(self) -> ChatTransport:
        api_url = (self.settings.base_url or DEFAULT_API_URL).rstrip("/")
        return ChatTransport(
            base_url=f"{api_url}/v1",
            headers={
                "Authorization": f"Bearer {self.settings.api_key or PLACEHOLDER_API_KEY}",
                "Content-Type": "application/json",
            },
            timeout_s=self.settings.timeout_s,
        )

    def normalize_headers(self, response: ChatResponse) -> dict[str, str]:
        # A local server sends no quota headers; usage drives the token estimate
        return usage_headers(response)
