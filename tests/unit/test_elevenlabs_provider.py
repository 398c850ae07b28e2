"""Unit tests for ElevenLabsProvider error handling and logic."""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from homespeak.config import BackendConfig
from homespeak.providers.elevenlabs import DEFAULT_VOICE_ID, ElevenLabsProvider
from homespeak.tts.errors import (
    ConfigurationError,
    TTSAPIError,
    TTSAuthError,
    TTSQuotaError,
    TTSRateLimitError,
)
from homespeak.tts.models import VoiceParams


class TestElevenLabsProviderInitialization:
    """Test ElevenLabsProvider initialization and authentication error handling."""

    def test_initialization_with_provided_api_key(self) -> None:
        """Test ElevenLabsProvider initializes successfully with provided API key."""
        with patch("homespeak.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            mock_client = MagicMock()
            mock_elevenlabs.return_value = mock_client

            provider = ElevenLabsProvider(api_key="test_key", timeout=10.0)

            assert provider._api_key == "test_key"
            mock_elevenlabs.assert_called_once_with(api_key="test_key", timeout=10.0)
            assert provider._client == mock_client

    def test_from_config(self) -> None:
        """Test voice, model and timeout come from the backend table."""
        config = BackendConfig(
            identifier="eleven",
            provider="elevenlabs",
            api_key="cfg_key",
            voice="voice-123",
            model="eleven_multilingual_v2",
            timeout=7.0,
        )
        with patch("homespeak.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            provider = ElevenLabsProvider.from_config(config)

            mock_elevenlabs.assert_called_once_with(api_key="cfg_key", timeout=7.0)
        assert provider.default_voice == "voice-123"
        assert provider.model_id == "eleven_multilingual_v2"

    def test_initialization_no_api_key_raises_configuration_error(self) -> None:
        """Test ElevenLabsProvider raises ConfigurationError when no API key provided."""
        with pytest.raises(ConfigurationError, match="ElevenLabs API key not found"):
            ElevenLabsProvider(api_key=None)

    def test_initialization_client_failure_raises_configuration_error(self) -> None:
        """Test ElevenLabsProvider raises when the ElevenLabs client fails to initialize."""
        with patch("homespeak.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            mock_elevenlabs.side_effect = Exception("Invalid API key")

            with pytest.raises(
                ConfigurationError, match="Failed to initialize ElevenLabs client"
            ):
                ElevenLabsProvider(api_key="invalid_key")


class TestElevenLabsProviderSynthesize:
    """Test ElevenLabsProvider synthesize method logic and error mapping."""

    def setup_method(self) -> None:
        """Set up test provider with mocked ElevenLabs client."""
        with patch("homespeak.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            self.mock_client = MagicMock()
            mock_elevenlabs.return_value = self.mock_client
            self.provider = ElevenLabsProvider(api_key="test_key")

    @pytest.mark.asyncio
    async def test_synthesize_returns_joined_audio(self) -> None:
        self.mock_client.text_to_speech.convert.return_value = iter([b"ab", b"cd"])

        clip = await self.provider.synthesize("Hello", VoiceParams())

        assert clip.data == b"abcd"
        assert clip.content_type == "audio/mpeg"
        kwargs = self.mock_client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_id"] == DEFAULT_VOICE_ID
        assert kwargs["model_id"] == "eleven_turbo_v2_5"
        assert kwargs["voice_settings"]["stability"] == 0.65

    @pytest.mark.asyncio
    async def test_v3_model_uses_supported_stability(self) -> None:
        self.mock_client.text_to_speech.convert.return_value = iter([b"x"])

        await self.provider.synthesize("Hello", VoiceParams(model="eleven_v3"))

        kwargs = self.mock_client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_settings"]["stability"] == 0.5

    @pytest.mark.asyncio
    async def test_voice_name_resolved_through_catalog(self) -> None:
        """Test a catalog voice name is translated to its voice id."""
        self.mock_client.voices.get_all.return_value = SimpleNamespace(
            voices=[SimpleNamespace(voice_id="id-brian", name="Brian")]
        )
        self.mock_client.text_to_speech.convert.return_value = iter([b"x"])

        await self.provider.synthesize("Hello", VoiceParams(voice="Brian"))

        kwargs = self.mock_client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_id"] == "id-brian"

    @pytest.mark.asyncio
    async def test_unknown_voice_passed_through_as_id(self) -> None:
        self.mock_client.voices.get_all.return_value = SimpleNamespace(voices=[])
        self.mock_client.text_to_speech.convert.return_value = iter([b"x"])

        await self.provider.synthesize("Hello", VoiceParams(voice="raw-voice-id"))

        kwargs = self.mock_client.text_to_speech.convert.call_args.kwargs
        assert kwargs["voice_id"] == "raw-voice-id"

    @pytest.mark.asyncio
    async def test_synthesize_empty_text_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Text cannot be empty"):
            await self.provider.synthesize("   ", VoiceParams())

    @pytest.mark.asyncio
    async def test_style_not_supported(self) -> None:
        with pytest.raises(TTSAPIError, match="Unsupported voice style"):
            await self.provider.synthesize("Hello", VoiceParams(style="angry"))

    @pytest.mark.asyncio
    async def test_empty_audio_raises_api_error(self) -> None:
        self.mock_client.text_to_speech.convert.return_value = iter([])

        with pytest.raises(TTSAPIError, match="No audio data received"):
            await self.provider.synthesize("Hello", VoiceParams())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("message", "error_type"),
        [
            ("401 unauthorized", TTSAuthError),
            ("429 Too Many Requests", TTSRateLimitError),
            ("quota_exceeded", TTSQuotaError),
            ("500 Internal Server Error", TTSAPIError),
            ("connection reset", TTSAPIError),
        ],
    )
    async def test_errors_mapped(self, message: str, error_type: type) -> None:
        self.mock_client.text_to_speech.convert.side_effect = Exception(message)

        with pytest.raises(error_type) as exc_info:
            await self.provider.synthesize("Hello", VoiceParams())

        assert exc_info.value.backend == "elevenlabs"

    @pytest.mark.asyncio
    async def test_status_code_attribute_used(self) -> None:
        error = Exception("forbidden")
        error.status_code = 403  # type: ignore[attr-defined]
        self.mock_client.text_to_speech.convert.side_effect = error

        with pytest.raises(TTSAuthError):
            await self.provider.synthesize("Hello", VoiceParams())


class TestElevenLabsProviderVoices:
    """Test voice listing and account info."""

    def setup_method(self) -> None:
        with patch("homespeak.providers.elevenlabs.ElevenLabs") as mock_elevenlabs:
            self.mock_client = MagicMock()
            mock_elevenlabs.return_value = self.mock_client
            self.provider = ElevenLabsProvider(api_key="test_key")

    @pytest.mark.asyncio
    async def test_list_voices_cached(self) -> None:
        self.mock_client.voices.get_all.return_value = SimpleNamespace(
            voices=[SimpleNamespace(voice_id="id-freya", name="Freya")]
        )

        first = await self.provider.list_voices()
        second = await self.provider.list_voices()

        assert first[0].voice_id == "id-freya"
        assert first[0].provider == "elevenlabs"
        assert first is second
        self.mock_client.voices.get_all.assert_called_once()

    @pytest.mark.asyncio
    async def test_list_voices_error_mapped(self) -> None:
        self.mock_client.voices.get_all.side_effect = Exception("401 unauthorized")

        with pytest.raises(TTSAuthError):
            await self.provider.list_voices()

    @pytest.mark.asyncio
    async def test_subscription_info(self) -> None:
        self.mock_client.user.subscription.get.return_value = SimpleNamespace(
            tier="creator", character_count=1200, character_limit=100000
        )

        info = await self.provider.subscription_info()

        assert info == {
            "tier": "creator",
            "character_count": 1200,
            "character_limit": 100000,
        }
