"""Pytest configuration for docenrich tests."""
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add project root to path so 'docenrich' can be imported without installing
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from docenrich.llm.config import (  # noqa: E402
    AppConfig,
    PromptSettings,
    ProviderSettings,
    StorageSettings,
)
from docenrich.llm.ratelimit import RateLimitHandler  # noqa: E402
from docenrich.llm.throttle import ThrottleManager  # noqa: E402
from docenrich.llm.tokens import TokenBudgeter  # noqa: E402


class WordEncoding:
    """Tokenizer stand-in: one token per whitespace-separated word."""

    def encode(self, text):
        return text.split()


@pytest.fixture
def budgeter():
    return TokenBudgeter(model="test-model", encoding_loader=lambda model: WordEncoding())


@pytest.fixture
def app_config(tmp_path):
    """Configuration with every provider set up and storage under tmp_path."""
    return AppConfig(
        active_provider="openai",
        providers={
            "openai": ProviderSettings(provider_id="openai", api_key="test-key", model="gpt-4o-mini"),
            "azure": ProviderSettings(
                provider_id="azure",
                api_key="azure-key",
                base_url="https://example.openai.azure.com/",
                deployment="gpt-4o",
                api_version="2024-02-01",
            ),
            "ollama": ProviderSettings(provider_id="ollama", model="llama3.2"),
            "custom": ProviderSettings(
                provider_id="custom",
                api_key="custom-key",
                base_url="https://llm.example.com/v1",
                model="mixtral",
            ),
        },
        prompts=PromptSettings(system_prompt="Analyze the document."),
        storage=StorageSettings(
            log_dir=str(tmp_path / "logs"),
            thumbnail_dir=str(tmp_path / "images"),
        ),
    )


@pytest.fixture
def sleeps():
    """Records requested backoff delays instead of sleeping."""
    return []


@pytest.fixture
def provider_kwargs(budgeter, sleeps):
    """Provider constructor arguments that avoid real sleeps and tokenizers."""
    return {
        "budgeter": budgeter,
        "rate_limit_handler": RateLimitHandler(sleep=sleeps.append),
        "throttle_manager": ThrottleManager(min_request_gap=0),
    }


def make_http_response(status_code=200, body=None, headers=None, text=""):
    """Build a mock requests.Response."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = body if body is not None else {}
    response.text = text
    return response


def completion_body(content, prompt_tokens=100, completion_tokens=20):
    return {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "model": "gpt-4o-mini",
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }
