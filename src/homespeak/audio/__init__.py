"""Audio playback package for homespeak.

This package provides the ordered playback queue and the output sinks it
feeds, including cross-platform playback using pygame.
"""

from .player import AudioPlayer, AudioSink, save_to_file
from .queue import PlaybackQueue, QueueClosedError, QueueState

__all__ = [
    "AudioPlayer",
    "AudioSink",
    "PlaybackQueue",
    "QueueClosedError",
    "QueueState",
    "save_to_file",
]
