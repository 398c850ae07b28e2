"""Data models for cache storage."""

from dataclasses import dataclass, field
from datetime import datetime

from ..tts.models import AudioClip


@dataclass(frozen=True)
class CacheEntry:
    """Cached audio for one request fingerprint.

    Entries are immutable once written.

    Attributes:
        fingerprint: Request fingerprint the audio was rendered for
        clip: Audio bytes and content type
        timestamp: When this entry was created
    """

    fingerprint: str
    clip: AudioClip
    timestamp: datetime = field(default_factory=datetime.now)
