"""OpenAI provider implementation."""

from ..transport import ChatTransport
from .base import ChatProvider, require

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"


class OpenAIProvider(ChatProvider):
    """OpenAI chat completions API."""

    id = "openai"

    @property
    def model(self) -> str:
        return self.settings.model or DEFAULT_MODEL

    def validate_config(self) -> None:
        require(self.settings, "api_key")

    def build_transport(self) -> ChatTransport:
        return ChatTransport(
            base_url=self.settings.base_url or DEFAULT_BASE_URL,
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout_s=self.settings.timeout_s,
        )
