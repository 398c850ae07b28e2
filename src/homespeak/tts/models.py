"""TTS data models with validation."""

from dataclasses import asdict, dataclass, field
from datetime import datetime

CONTENT_TYPE_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/ogg": "ogg",
}


@dataclass(frozen=True)
class SynthesisRequest:
    """A request to speak a phrase.

    Args:
        text: Already-rendered phrase text
        voice: Voice identity (a configured profile name or a backend-native voice id)
        backend: Optional backend identifier overriding the voice mapping
        style: Optional speaking style overriding the voice profile's style
    """

    text: str
    voice: str = ""
    backend: str | None = None
    style: str | None = None

    def __post_init__(self) -> None:
        """Validate request."""
        if not self.text or not self.text.strip():
            raise ValueError("Text cannot be empty")


@dataclass(frozen=True)
class VoiceParams:
    """Backend-specific voice selection resolved from a request.

    Every field is voice-affecting and therefore part of the fingerprint.
    """

    voice: str | None = None
    style: str | None = None
    language: str | None = None
    model: str | None = None

    def as_dict(self) -> dict[str, str | None]:
        return asdict(self)


@dataclass(frozen=True)
class AudioClip:
    """Rendered audio bytes with their content type."""

    data: bytes
    content_type: str = "audio/mpeg"

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError("No audio data provided")

    @property
    def extension(self) -> str:
        return CONTENT_TYPE_EXTENSIONS.get(self.content_type, "bin")

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class AudioMessage:
    """A unit of work for the playback queue.

    Attributes:
        sequence: Arrival sequence number assigned at reservation time
        clip: Audio to play
        source: Optional identity of the producer, for logging
        created_at: When the audio became ready
    """

    sequence: int
    clip: AudioClip
    source: str | None = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class VoiceInfo:
    """Information about an available voice.

    Args:
        voice_id: Unique identifier for the voice
        name: Human-readable name of the voice
        provider: Provider kind that offers the voice
        language: Optional language/locale code
        styles: Speaking styles the voice supports
    """

    voice_id: str
    name: str
    provider: str
    language: str | None = None
    styles: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Validate voice information."""
        if not self.voice_id or not self.voice_id.strip():
            raise ValueError("voice_id cannot be empty")
        if not self.name or not self.name.strip():
            raise ValueError("name cannot be empty")


@dataclass
class VoiceSettings:
    """ElevenLabs voice generation settings.

    Args:
        stability: Voice stability (0.0-1.0)
        similarity_boost: Voice similarity boost (0.0-1.0)
        style: Voice style exaggeration (0.0-1.0)
        use_speaker_boost: Whether to use speaker boost
        speaking_rate: Speaking rate (0.25-4.0)
    """

    stability: float = 0.65
    similarity_boost: float = 0.75
    style: float = 0.4
    use_speaker_boost: bool = True
    speaking_rate: float = 0.87

    def __post_init__(self) -> None:
        """Validate voice settings."""
        if not 0.0 <= self.stability <= 1.0:
            raise ValueError("stability must be between 0.0 and 1.0")
        if not 0.0 <= self.similarity_boost <= 1.0:
            raise ValueError("similarity_boost must be between 0.0 and 1.0")
        if not 0.0 <= self.style <= 1.0:
            raise ValueError("style must be between 0.0 and 1.0")
        if not 0.25 <= self.speaking_rate <= 4.0:
            raise ValueError("speaking_rate must be between 0.25 and 4.0")

    def to_dict(self) -> dict[str, float | bool]:
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }
