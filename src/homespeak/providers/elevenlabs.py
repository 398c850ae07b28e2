"""ElevenLabs text-to-speech provider implementation."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from elevenlabs.client import ElevenLabs

from ..tts.errors import (
    ConfigurationError,
    SynthesisBackendError,
    TTSAPIError,
    TTSAuthError,
    TTSQuotaError,
    TTSRateLimitError,
)
from ..tts.models import AudioClip, VoiceInfo, VoiceParams, VoiceSettings
from .base import BackendDescriptor, TTSProvider

if TYPE_CHECKING:
    from ..config import BackendConfig

logger = logging.getLogger(__name__)

# Freya
DEFAULT_VOICE_ID = "jsCqWAovK2LkecY7zXl4"
DEFAULT_MODEL_ID = "eleven_turbo_v2_5"


class ElevenLabsProvider(TTSProvider):
    """ElevenLabs TTS provider implementation.

    Provides methods to synthesize speech from text and manage voices
    using the ElevenLabs API. Voice names are resolved to voice ids through
    the account's voice catalog.
    """

    descriptor = BackendDescriptor(
        identifier="elevenlabs",
        requests_per_minute=None,
        content_type="audio/mpeg",
    )

    def __init__(
        self,
        api_key: str | None,
        default_voice: str = DEFAULT_VOICE_ID,
        model_id: str = DEFAULT_MODEL_ID,
        timeout: float | None = None,
    ) -> None:
        """Initialize ElevenLabs provider.

        Args:
            api_key: ElevenLabs API key
            default_voice: Voice id used when the request carries none
            model_id: ElevenLabs model ID to use
            timeout: HTTP timeout in seconds for the SDK client

        Raises:
            ConfigurationError: If API key is not provided or the client cannot be built.
        """
        if not api_key:
            raise ConfigurationError(
                "ElevenLabs API key not found. Set ELEVENLABS_API_KEY environment "
                "variable or api_key_env in the backend table."
            )
        self._api_key = api_key
        self.default_voice = default_voice
        self.model_id = model_id

        try:
            self._client = ElevenLabs(api_key=self._api_key, timeout=timeout)
        except Exception as e:
            raise ConfigurationError(
                f"Failed to initialize ElevenLabs client: {e}", e
            ) from e

        # Cache for voices to avoid repeated API calls
        self._voices_cache: list[VoiceInfo] | None = None

    @classmethod
    def from_config(cls, config: "BackendConfig") -> "ElevenLabsProvider":
        return cls(
            api_key=config.api_key,
            default_voice=config.voice or DEFAULT_VOICE_ID,
            model_id=config.model or DEFAULT_MODEL_ID,
            timeout=config.timeout,
        )

    async def synthesize(self, text: str, params: VoiceParams) -> AudioClip:
        """Convert text to speech audio.

        Args:
            text: Text to convert to speech
            params: Voice id or name and optional model override

        Returns:
            MP3 audio clip

        Raises:
            TTSAPIError: If API call fails
            TTSAuthError: If authentication fails
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        self.check_style(params.style)

        voice_id = await self.resolve_voice_id(params.voice or self.default_voice)
        model_id = params.model or self.model_id

        # v3 models require different voice settings (stability must be 0.0, 0.5, or 1.0)
        if model_id.startswith("eleven_v3"):
            voice_settings = VoiceSettings(stability=0.5)
        else:
            voice_settings = VoiceSettings()

        def _sync_convert() -> bytes:
            audio_generator = self._client.text_to_speech.convert(
                text=text.strip(),
                voice_id=voice_id,
                model_id=model_id,
                voice_settings=voice_settings.to_dict(),
            )
            return b"".join(audio_generator)

        try:
            # Run synchronous ElevenLabs client in thread to avoid blocking event loop
            audio_bytes = await asyncio.to_thread(_sync_convert)
        except Exception as e:
            raise self._map_error(e, "API call failed") from e

        if not audio_bytes:
            raise TTSAPIError(
                "No audio data received from API", backend=self.descriptor.identifier
            )

        return AudioClip(audio_bytes, self.descriptor.content_type)

    async def resolve_voice_id(self, voice: str) -> str:
        """Translate a voice name from the catalog into its voice id.

        Unknown names are assumed to already be voice ids.
        """
        if voice == self.default_voice:
            return voice
        try:
            voices = await self.list_voices()
        except SynthesisBackendError as e:
            logger.warning(f"Could not load ElevenLabs voice catalog: {e}")
            return voice
        for info in voices:
            if info.name == voice:
                logger.debug(f"Using voice id {info.voice_id} for voice {voice}")
                return info.voice_id
        return voice

    async def list_voices(self) -> list[VoiceInfo]:
        """Get list of available voices.

        Results are cached after first call to avoid repeated API requests.

        Raises:
            TTSAPIError: If API call fails
            TTSAuthError: If authentication fails
        """
        if self._voices_cache is not None:
            return self._voices_cache

        def _sync_get_voices() -> list[VoiceInfo]:
            response = self._client.voices.get_all()
            return [
                VoiceInfo(
                    voice_id=voice.voice_id,
                    name=voice.name,
                    provider=self.descriptor.identifier,
                )
                for voice in response.voices
            ]

        try:
            voices = await asyncio.to_thread(_sync_get_voices)
        except Exception as e:
            raise self._map_error(e, "Failed to list voices") from e

        self._voices_cache = voices
        return voices

    async def subscription_info(self) -> dict[str, Any]:
        """Return character usage for the account's subscription.

        Raises:
            TTSAPIError: If API call fails
            TTSAuthError: If authentication fails
        """

        def _sync_get_subscription() -> dict[str, Any]:
            subscription = self._client.user.subscription.get()
            return {
                "tier": getattr(subscription, "tier", None),
                "character_count": getattr(subscription, "character_count", None),
                "character_limit": getattr(subscription, "character_limit", None),
            }

        try:
            return await asyncio.to_thread(_sync_get_subscription)
        except Exception as e:
            raise self._map_error(e, "Failed to read subscription") from e

    def _map_error(self, error: Exception, context: str) -> SynthesisBackendError:
        backend = self.descriptor.identifier
        status = getattr(error, "status_code", None)
        message = str(error)
        if status in (401, 403) or "unauthorized" in message.lower() or "401" in message:
            return TTSAuthError(
                f"Authentication failed: {error}", status, error, backend=backend
            )
        if status == 429 or "429" in message:
            return TTSRateLimitError(
                f"Rate limit exceeded: {error}", 429, error, backend=backend
            )
        if "quota_exceeded" in message or "quota" in message.lower():
            return TTSQuotaError(f"Quota exceeded: {error}", status, error, backend=backend)
        if (status is not None and status >= 500) or message[:1] == "5":
            return TTSAPIError(f"Server error: {error}", status, error, backend=backend)
        return TTSAPIError(f"{context}: {error}", status, error, backend=backend)
