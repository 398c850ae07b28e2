"""Core functionality for homespeak - wires configuration, backends, cache and playback."""

import logging
from pathlib import Path

from .audio.player import AudioPlayer, AudioSink, save_to_file
from .audio.queue import PlaybackQueue
from .cache.manager import AudioCache
from .cache.storage import CacheStorage, DiskCacheStorage, MemoryCacheStorage
from .config import CacheConfig, HomeSpeakConfig, load_config
from .providers import build_backends
from .tts.errors import CacheError
from .tts.models import AudioClip, SynthesisRequest, VoiceInfo
from .tts.service import SpeechService

logger = logging.getLogger(__name__)


def build_cache(config: CacheConfig, enabled: bool = True) -> AudioCache:
    """Create the audio cache described by the cache configuration.

    A disabled cache still coordinates concurrent synthesis, it just starts
    empty and keeps nothing beyond this process.

    Raises:
        CacheError: If disk storage cannot be opened in strict mode
    """
    storage: CacheStorage
    if not (enabled and config.enabled):
        logger.debug("Cache disabled, using a private in-memory store")
        storage = MemoryCacheStorage()
    elif config.storage == "disk":
        try:
            storage = DiskCacheStorage(config.directory)
        except CacheError as e:
            if config.strict:
                raise
            logger.warning(f"Disk cache unavailable, falling back to memory: {e}")
            storage = MemoryCacheStorage(config.max_entries)
    else:
        storage = MemoryCacheStorage(config.max_entries)
    return AudioCache(storage, strict=config.strict)


def build_service(
    config: HomeSpeakConfig,
    sink: AudioSink | None = None,
    use_cache: bool = True,
    playback: bool = True,
) -> SpeechService:
    """Build a SpeechService from configuration.

    The playback queue is created but not started; call
    ``service.playback.start()`` from inside the event loop.

    Args:
        config: Loaded configuration
        sink: Output device (pygame AudioPlayer if omitted)
        use_cache: Reuse previously synthesized audio
        playback: Create a playback queue (also requires playback.enabled)

    Raises:
        ConfigurationError: If backends are misconfigured
    """
    backends = build_backends(config)
    cache = build_cache(config.cache, enabled=use_cache)

    queue = None
    if playback and config.playback.enabled:
        queue = PlaybackQueue(sink or AudioPlayer(volume=config.playback.volume))

    return SpeechService(config, backends, cache, queue)


async def list_available_voices(
    backend: str | None = None, config: HomeSpeakConfig | None = None
) -> list[VoiceInfo]:
    """List the voices of a configured backend (the default backend if omitted).

    Raises:
        ConfigurationError: If the backend is unknown or misconfigured
        SynthesisBackendError: If the provider call fails
    """
    config = config or load_config()
    service = build_service(config, playback=False)
    try:
        return await service.list_voices(backend)
    finally:
        await service.aclose()


async def speak_text(
    text: str,
    voice: str = "",
    backend: str | None = None,
    style: str | None = None,
    output_file: str | Path | None = None,
    use_cache: bool = True,
    config: HomeSpeakConfig | None = None,
    sink: AudioSink | None = None,
) -> AudioClip:
    """Convert text to speech and play or save the audio.

    Args:
        text: Text to convert to speech
        voice: Voice identity (configured profile or backend-native voice)
        backend: Optional backend identifier override
        style: Optional speaking style override
        output_file: Save audio here instead of playing it
        use_cache: Reuse previously synthesized audio
        config: Configuration (loaded from the default path if omitted)
        sink: Output device override

    Returns:
        The synthesized audio

    Raises:
        ValueError: If text is empty
        ConfigurationError: If configuration is invalid
        SynthesisFailed: If every backend in the chain fails
        OSError: If the output file cannot be written
    """
    request = SynthesisRequest(text=text, voice=voice, backend=backend, style=style)
    config = config or load_config()

    service = build_service(
        config, sink=sink, use_cache=use_cache, playback=output_file is None
    )
    if service.playback is not None:
        service.playback.start()

    try:
        if output_file is not None:
            clip = await service.synthesize(request)
            save_to_file(clip.data, output_file)
        else:
            clip = await service.speak(request, source="cli")
    finally:
        # Drains playback before returning
        await service.aclose()
    return clip
