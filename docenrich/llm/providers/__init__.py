"""Document analysis provider implementations."""

from .azure import AzureOpenAIProvider
from .base import ChatProvider, Provider
from .custom import CustomProvider
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .registry import get_provider_class, list_providers, register_provider

# Register providers
register_provider(OpenAIProvider)
register_provider(AzureOpenAIProvider)
register_provider(OllamaProvider)
register_provider(CustomProvider)

__all__ = [
    "Provider",
    "ChatProvider",
    "OpenAIProvider",
    "AzureOpenAIProvider",
    "OllamaProvider",
    "CustomProvider",
    "register_provider",
    "get_provider_class",
    "list_providers",
]
