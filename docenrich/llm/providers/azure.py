"""Azure OpenAI provider implementation.

Azure deployments often omit rate limit headers. Token usage from the
response body is used as a proxy: it is copied into synthetic usage headers
so the trackers see it through the common header vocabulary.
"""

from datetime import datetime, timezone

from docenrich.logger import get_logger

from ..ratelimit import (
    USAGE_COMPLETION_HEADER,
    USAGE_PROMPT_HEADER,
    USAGE_TOTAL_HEADER,
    lookup_header,
)
from ..response import ChatResponse
from ..transport import ChatTransport
from .base import ChatProvider, require

logger = get_logger(__name__)

DEFAULT_DEPLOYMENT = "gpt-4"
DEFAULT_API_VERSION = "2023-05-15"


def usage_headers(response: ChatResponse) -> dict[str, str]:
    """Response headers extended with usage counters from the body."""
    headers = dict(response.headers)
    usage = response.usage
    if usage is not None:
        headers[USAGE_TOTAL_HEADER] = str(usage.total_tokens)
        headers[USAGE_PROMPT_HEADER] = str(usage.prompt_tokens)
        headers[USAGE_COMPLETION_HEADER] = str(usage.completion_tokens)
    return headers


class AzureOpenAIProvider(ChatProvider):
    """Azure OpenAI deployment endpoint."""

    id = "azure"

    @property
    def model(self) -> str:
        return self.settings.deployment or DEFAULT_DEPLOYMENT

    def validate_config(self) -> None:
        require(self.settings, "base_url", "api_key")

    def build_transport(self) -> ChatTransport:
        endpoint = self.settings.base_url.rstrip("/")
        api_version = self.settings.api_version or DEFAULT_API_VERSION
        return ChatTransport(
            base_url=f"{endpoint}/openai/deployments/{self.model}",
            headers={
                "api-key": self.settings.api_key,
                "Content-Type": "application/json",
            },
            params={"api-version": api_version},
            timeout_s=self.settings.timeout_s,
        )

    def normalize_headers(self, response: ChatResponse) -> dict[str, str]:
        usage = response.usage
        if usage is not None:
            updates = {
                "last_token_usage": usage.total_tokens,
                "last_updated": datetime.now(timezone.utc),
            }
            # With real token headers the tracker skips usage accumulation
            if lookup_header(response.headers, "remaining_tokens") is not None:
                state = self.rate_limit_tracker.state
                updates["total_tokens_used"] = state.total_tokens_used + usage.total_tokens
            self.rate_limit_tracker.update_limits(**updates)
            logger.debug("llm.azure.usage", total_tokens=usage.total_tokens)
        return usage_headers(response)
