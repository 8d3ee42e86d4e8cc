"""Provider registration and lookup system.

The registry maps provider type names to classes. Instances, and the rate
limit state they own, are created and held by their caller.
"""

from typing import Dict, Type

from .base import ChatProvider


class ProviderRegistry:
    """Registry for provider classes."""

    def __init__(self):
        self._providers: Dict[str, Type[ChatProvider]] = {}

    def register(self, provider_cls: Type[ChatProvider]) -> None:
        """Register a provider class under its id.

        Args:
            provider_cls: Provider class to register
        """
        self._providers[provider_cls.id] = provider_cls

    def get(self, provider_id: str) -> Type[ChatProvider]:
        """Get a provider class by ID.

        Args:
            provider_id: Provider identifier

        Returns:
            Provider class

        Raises:
            ValueError: If provider not found
        """
        if provider_id not in self._providers:
            available = ", ".join(self._providers.keys())
            raise ValueError(
                f"Provider '{provider_id}' not found. "
                f"Available providers: {available or 'none'}"
            )
        return self._providers[provider_id]

    def list(self) -> list[str]:
        """List all registered provider IDs.

        Returns:
            List of provider identifiers
        """
        return list(self._providers.keys())


_registry = ProviderRegistry()


def register_provider(provider_cls: Type[ChatProvider]) -> None:
    """Register a provider class in the default registry."""
    _registry.register(provider_cls)


def get_provider_class(provider_id: str) -> Type[ChatProvider]:
    """Get a provider class from the default registry."""
    return _registry.get(provider_id)


def list_providers() -> list[str]:
    """List all registered provider IDs."""
    return _registry.list()
