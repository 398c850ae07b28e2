"""Unit tests for TTS data models."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from homespeak.tts.models import (
    AudioClip,
    AudioMessage,
    SynthesisRequest,
    VoiceInfo,
    VoiceParams,
    VoiceSettings,
)


class TestSynthesisRequest:
    """Test SynthesisRequest validation."""

    def test_valid_request(self) -> None:
        request = SynthesisRequest("The front door is open", voice="alert-en")

        assert request.text == "The front door is open"
        assert request.voice == "alert-en"
        assert request.backend is None
        assert request.style is None

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_text_rejected(self, text: str) -> None:
        """Test empty or whitespace-only text raises ValueError."""
        with pytest.raises(ValueError, match="Text cannot be empty"):
            SynthesisRequest(text)

    def test_request_is_immutable(self) -> None:
        request = SynthesisRequest("Hello")

        with pytest.raises(AttributeError):
            request.text = "Goodbye"  # type: ignore[misc]


class TestVoiceParams:
    def test_as_dict_contains_every_field(self) -> None:
        params = VoiceParams(voice="en-GB-Wavenet-A", language="en-GB")

        assert params.as_dict() == {
            "voice": "en-GB-Wavenet-A",
            "style": None,
            "language": "en-GB",
            "model": None,
        }


class TestAudioClip:
    """Test AudioClip validation and helpers."""

    def test_empty_audio_rejected(self) -> None:
        with pytest.raises(ValueError, match="No audio data provided"):
            AudioClip(b"")

    @pytest.mark.parametrize(
        ("content_type", "extension"),
        [("audio/mpeg", "mp3"), ("audio/wav", "wav"), ("application/x-unknown", "bin")],
    )
    def test_extension_follows_content_type(
        self, content_type: str, extension: str
    ) -> None:
        assert AudioClip(b"data", content_type).extension == extension

    def test_len_is_byte_count(self) -> None:
        assert len(AudioClip(b"12345")) == 5


class TestAudioMessage:
    def test_message_carries_sequence_and_source(self) -> None:
        message = AudioMessage(sequence=3, clip=AudioClip(b"x"), source="washer")

        assert message.sequence == 3
        assert message.source == "washer"
        assert message.created_at is not None


class TestVoiceInfo:
    """Test VoiceInfo validation."""

    def test_valid_voice_info(self) -> None:
        voice = VoiceInfo(
            voice_id="en-US-SaraNeural",
            name="Sara",
            provider="azure",
            language="en-US",
            styles=("angry", "cheerful"),
        )

        assert voice.styles == ("angry", "cheerful")

    def test_empty_voice_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="voice_id cannot be empty"):
            VoiceInfo(voice_id=" ", name="Sara", provider="azure")

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="name cannot be empty"):
            VoiceInfo(voice_id="id", name="", provider="azure")


class TestVoiceSettings:
    """Test VoiceSettings validation logic."""

    def test_defaults(self) -> None:
        settings = VoiceSettings()

        assert settings.stability == 0.65
        assert settings.similarity_boost == 0.75
        assert settings.use_speaker_boost is True

    @pytest.mark.parametrize(
        ("field", "value", "message"),
        [
            ("stability", 1.5, "stability must be between 0.0 and 1.0"),
            ("similarity_boost", -0.1, "similarity_boost must be between 0.0 and 1.0"),
            ("style", 2.0, "style must be between 0.0 and 1.0"),
            ("speaking_rate", 0.1, "speaking_rate must be between 0.25 and 4.0"),
        ],
    )
    def test_out_of_range_rejected(self, field: str, value: float, message: str) -> None:
        with pytest.raises(ValueError, match=message):
            VoiceSettings(**{field: value})

    def test_to_dict_omits_speaking_rate(self) -> None:
        assert "speaking_rate" not in VoiceSettings().to_dict()
