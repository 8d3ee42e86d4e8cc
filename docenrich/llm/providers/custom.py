"""Custom OpenAI-compatible endpoint provider."""

from ..transport import ChatTransport
from .base import ChatProvider, require


class CustomProvider(ChatProvider):
    """Any endpoint speaking the OpenAI chat completions protocol."""

    id = "custom"

    def validate_config(self) -> None:
        require(self.settings, "base_url", "api_key", "model")

    def build_transport(self) -> ChatTransport:
        return ChatTransport(
            base_url=self.settings.base_url,
            headers={
                "Authorization": f"Bearer {self.settings.api_key}",
                "Content-Type": "application/json",
            },
            timeout_s=self.settings.timeout_s,
        )
