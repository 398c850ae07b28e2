"""Pytest configuration and fixtures for homespeak tests."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from homespeak.audio.queue import PlaybackQueue
from homespeak.cache.manager import AudioCache
from homespeak.tts.service import SpeechService
from test_helpers import RecordingSink, StubProvider, make_config


@pytest.fixture(autouse=True)
def clear_speech_env(monkeypatch) -> None:
    """Keep developer environment variables from leaking into config parsing."""
    for name in (
        "HOMESPEAK_DEFAULT_BACKEND",
        "HOMESPEAK_CACHE_DIR",
        "HOMESPEAK_LOG_LEVEL",
        "AZURE_SPEECH_KEY",
        "GOOGLE_TTS_API_KEY",
        "ELEVENLABS_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def backends() -> dict[str, StubProvider]:
    return {"primary": StubProvider("primary"), "secondary": StubProvider("secondary")}


@pytest.fixture
def service(backends, sink) -> SpeechService:
    """Speech service over stub backends with a recording playback queue."""
    return SpeechService(make_config(), backends, AudioCache(), PlaybackQueue(sink))
