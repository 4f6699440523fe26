"""External collaborators for trackforge.

This module provides a registry pattern for the text-generation
providers, allowing the provider to be selected by name in config.
"""

from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from .base import TextGenerator

from .text import GeminiTextGenerator, OpenAITextGenerator

__all__ = ["ProviderRegistry"]


class ProviderRegistry:
    """Registry for managing text-generation providers.

    This class maintains a registry of available providers,
    allowing registration and retrieval by name.
    """

    _providers: ClassVar[dict[str, type["TextGenerator"]]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type["TextGenerator"]) -> None:
        """Register a text-generation provider.

        Args:
            name: Name to register the provider under
            provider_class: Provider class that implements TextGenerator
        """
        cls._providers[name] = provider_class

    @classmethod
    def get(cls, name: str) -> type["TextGenerator"]:
        """Get a provider class by name.

        Args:
            name: Name of the provider to retrieve

        Returns:
            Provider class

        Raises:
            KeyError: If provider name not found
        """
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys()) if cls._providers else "none"
            raise KeyError(
                f"Provider '{name}' not found. Available providers: {available}"
            )
        return cls._providers[name]

    @classmethod
    def create(cls, name: str, **kwargs: Any) -> "TextGenerator":
        """Instantiate a registered provider.

        Args:
            name: Name of the provider
            **kwargs: Constructor arguments (model, timeout, api_key, ...)

        Raises:
            KeyError: If provider name not found
            ServiceAuthError: If the provider's API key is missing
        """
        return cls.get(name)(**kwargs)

    @classmethod
    def names(cls) -> list[str]:
        return sorted(cls._providers)


# Register providers
ProviderRegistry.register("openai", OpenAITextGenerator)
ProviderRegistry.register("gemini", GeminiTextGenerator)
