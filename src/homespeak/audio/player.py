"""Audio output sinks, including cross-platform playback using pygame."""

# ruff: noqa: E402
import os

# Suppress pygame's annoying welcome message BEFORE any pygame import
os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import warnings

# Suppress pygame's pkg_resources deprecation warning spam
warnings.filterwarnings("ignore", category=UserWarning, module="pygame.pkgdata")

import asyncio
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path

import pygame

from ..tts.errors import PlaybackDeviceError
from ..tts.models import AudioClip

logger = logging.getLogger(__name__)


class AudioSink(ABC):
    """Output device abstraction fed by the playback queue.

    ``play`` must not return until the device has finished rendering the
    clip, and must raise PlaybackDeviceError when the device fails.
    """

    @abstractmethod
    async def play(self, clip: AudioClip) -> None:
        pass

    def set_volume(self, volume: float) -> None:
        """Set output volume (0.0-1.0). Sinks without volume control ignore it."""
        return None

    def stop(self) -> None:
        """Cut off the clip being rendered, if the device supports it."""
        return None

    def reset(self) -> None:
        """Release the output device so the next play reopens it."""
        return None


class AudioPlayer(AudioSink):
    """Cross-platform audio player using the pygame mixer.

    The mixer is initialized on first use and torn down after a device
    failure so the next clip starts from a fresh output stream.
    """

    def __init__(self, volume: float = 1.0) -> None:
        self._mixer_ready = False
        self.set_volume(volume)

    def set_volume(self, volume: float) -> None:
        if not 0.0 <= volume <= 1.0:
            raise ValueError("volume must be between 0.0 and 1.0")
        logger.info(f"Setting volume to {volume}")
        self.volume = volume

    def _ensure_mixer(self) -> None:
        if self._mixer_ready:
            return
        try:
            pygame.mixer.init()
        except pygame.error as e:
            raise PlaybackDeviceError(
                f"Failed to initialize pygame audio mixer: {e}", e
            ) from e
        self._mixer_ready = True

    def stop(self) -> None:
        if self._mixer_ready:
            pygame.mixer.music.stop()

    def reset(self) -> None:
        """Release the output device; it is reopened on the next play."""
        if self._mixer_ready:
            pygame.mixer.quit()
            self._mixer_ready = False

    def play_bytes(self, clip: AudioClip) -> None:
        """Play a clip through system speakers (blocking).

        Raises:
            PlaybackDeviceError: If the device is unavailable or playback fails.
        """
        self._ensure_mixer()
        try:
            # Create in-memory file-like object
            audio_file = io.BytesIO(clip.data)

            pygame.mixer.music.load(audio_file, clip.extension)
            pygame.mixer.music.set_volume(self.volume)
            pygame.mixer.music.play()

            # Wait for playback to complete
            while pygame.mixer.music.get_busy():
                pygame.time.Clock().tick(10)

        except pygame.error as e:
            self.reset()
            raise PlaybackDeviceError(f"Failed to play audio: {e}", e) from e

    async def play(self, clip: AudioClip) -> None:
        """Play a clip through system speakers (async).

        Raises:
            PlaybackDeviceError: If the device is unavailable or playback fails.
        """
        # Run pygame operations in thread to avoid blocking event loop
        await asyncio.to_thread(self.play_bytes, clip)


def save_to_file(audio_data: bytes, filepath: str | Path) -> None:
    """Save audio bytes to a file.

    Args:
        audio_data: Audio data to save.
        filepath: Path where the audio file should be saved.

    Raises:
        ValueError: If no audio data provided.
        OSError: If file cannot be written.
    """
    if not audio_data:
        raise ValueError("No audio data provided")

    # Convert to Path object if string
    filepath = Path(filepath)

    try:
        # Create parent directories if they don't exist
        filepath.parent.mkdir(parents=True, exist_ok=True)

        # Write audio data to file
        filepath.write_bytes(audio_data)

    except OSError as e:
        raise OSError(f"Failed to save audio to {filepath}: {e}") from e
