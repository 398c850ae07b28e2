"""Provider abstraction for text-to-speech services.

This module provides a registry pattern mapping provider kinds named in
configuration to their implementations, so backends are selected by
configuration rather than by code.
"""

from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from ..config import BackendConfig, HomeSpeakConfig
    from .base import TTSProvider

from ..tts.errors import ConfigurationError
from .azure import AzureProvider
from .base import BackendDescriptor
from .elevenlabs import ElevenLabsProvider
from .google import GoogleProvider

__all__ = ["BackendDescriptor", "ProviderRegistry", "build_backends"]


class ProviderRegistry:
    """Registry for managing TTS provider classes.

    This class maintains a registry of available TTS providers,
    allowing registration and retrieval by name. Instances are built
    from a BackendConfig and owned by the caller.
    """

    _providers: ClassVar[dict[str, type["TTSProvider"]]] = {}

    @classmethod
    def register(cls, name: str, provider_class: type["TTSProvider"]) -> None:
        """Register a TTS provider.

        Args:
            name: Name to register the provider under
            provider_class: Provider class that implements TTSProvider
        """
        cls._providers[name] = provider_class

    @classmethod
    def get(cls, name: str) -> type["TTSProvider"]:
        """Get a provider class by name.

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
    def create(cls, config: "BackendConfig") -> "TTSProvider":
        """Build a provider instance for one configured backend.

        Raises:
            KeyError: If the configured provider kind is not registered
            ConfigurationError: If the provider rejects its configuration
        """
        return cls.get(config.provider).from_config(config)


def build_backends(config: "HomeSpeakConfig") -> dict[str, "TTSProvider"]:
    """Instantiate every configured backend, keyed by backend identifier.

    Raises:
        ConfigurationError: If any backend is misconfigured
    """
    backends: dict[str, "TTSProvider"] = {}
    for identifier, backend_config in config.backends.items():
        try:
            backends[identifier] = ProviderRegistry.create(backend_config)
        except KeyError as e:
            raise ConfigurationError(
                f"backends.{identifier}: {e.args[0]}", e
            ) from None
    return backends


# Register providers
ProviderRegistry.register("azure", AzureProvider)
ProviderRegistry.register("elevenlabs", ElevenLabsProvider)
ProviderRegistry.register("google", GoogleProvider)
