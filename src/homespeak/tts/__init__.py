"""TTS (Text-to-Speech) package for homespeak.

This package holds the request/audio models, the error taxonomy and the
speech service that ties backends, cache and playback together.
"""

from .errors import (
    CacheError,
    ConfigurationError,
    PlaybackDeviceError,
    SynthesisBackendError,
    SynthesisFailed,
    TTSAPIError,
    TTSAuthError,
    TTSError,
    TTSQuotaError,
    TTSRateLimitError,
    TTSTimeoutError,
)
from .models import (
    AudioClip,
    AudioMessage,
    SynthesisRequest,
    VoiceInfo,
    VoiceParams,
    VoiceSettings,
)

__all__ = [
    "AudioClip",
    "AudioMessage",
    "CacheError",
    "ConfigurationError",
    "PlaybackDeviceError",
    "SynthesisBackendError",
    "SynthesisFailed",
    "SynthesisRequest",
    "TTSAPIError",
    "TTSAuthError",
    "TTSError",
    "TTSQuotaError",
    "TTSRateLimitError",
    "TTSTimeoutError",
    "VoiceInfo",
    "VoiceParams",
    "VoiceSettings",
]
