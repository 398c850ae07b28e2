"""Abstract base class for text-to-speech providers.

This module defines the interface that all TTS providers must implement,
ensuring consistent behavior across different TTS backends.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from ..tts.errors import TTSAPIError
from ..tts.models import AudioClip, VoiceInfo, VoiceParams

if TYPE_CHECKING:
    from ..config import BackendConfig


@dataclass(frozen=True)
class BackendDescriptor:
    """Static metadata describing a provider's capabilities.

    Attributes:
        identifier: Provider kind name used in configuration
        voice_styles: Speaking styles accepted in VoiceParams.style
        requests_per_minute: Nominal provider rate limit, None if unpublished
        requires_auth: Whether an API key must be configured
        content_type: Content type of the audio the provider returns
    """

    identifier: str
    voice_styles: frozenset[str] = frozenset()
    requests_per_minute: int | None = None
    requires_auth: bool = True
    content_type: str = "audio/mpeg"


class TTSProvider(ABC):
    """Abstract base class for text-to-speech providers.

    All TTS providers must inherit from this class, declare a descriptor
    and implement the required methods for synthesizing speech and
    listing voices.
    """

    descriptor: ClassVar[BackendDescriptor]

    @classmethod
    @abstractmethod
    def from_config(cls, config: "BackendConfig") -> "TTSProvider":
        """Build a provider instance from a backend configuration.

        Raises:
            ConfigurationError: If credentials or required options are missing
        """

    @abstractmethod
    async def synthesize(self, text: str, params: VoiceParams) -> AudioClip:
        """Convert text to audio.

        Args:
            text: The text to convert to speech
            params: Voice selection for this provider

        Returns:
            Rendered audio with its content type

        Raises:
            SynthesisBackendError: If synthesis fails
        """

    @abstractmethod
    async def list_voices(self) -> list[VoiceInfo]:
        """Return available voices for this provider.

        Raises:
            SynthesisBackendError: If voice listing fails
        """

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None

    def check_style(self, style: str | None) -> None:
        """Reject a speaking style the provider does not support.

        Raises:
            TTSAPIError: If the style is not in the descriptor's voice styles
        """
        if style is None or style in self.descriptor.voice_styles:
            return
        supported = ", ".join(sorted(self.descriptor.voice_styles)) or "none"
        raise TTSAPIError(
            f"Unsupported voice style '{style}' for {self.descriptor.identifier}. "
            f"Supported styles: {supported}",
            backend=self.descriptor.identifier,
        )
