"""Speech service orchestrator for homespeak.

Coordinates the configured TTS backends, the AudioCache and the
PlaybackQueue: resolves a request's voice identity to a backend, serves
audio from cache or synthesizes it once, and hands the result to the queue
in arrival order.
"""

import asyncio
import logging
from collections.abc import Mapping
from functools import partial

from ..audio.queue import PlaybackQueue
from ..cache.fingerprint import fingerprint
from ..cache.manager import AudioCache
from ..config import HomeSpeakConfig
from ..providers.base import BackendDescriptor, TTSProvider
from .errors import (
    CacheError,
    ConfigurationError,
    SynthesisBackendError,
    SynthesisFailed,
    TTSTimeoutError,
)
from .models import AudioClip, SynthesisRequest, VoiceInfo, VoiceParams

logger = logging.getLogger(__name__)


class SpeechService:
    """Orchestrates the synthesis-and-playback pipeline.

    Example:
        service = SpeechService(config, build_backends(config), AudioCache(), queue)

        # Synthesizes (or reuses cached audio) and queues it for playback
        await service.speak(SynthesisRequest("The front door is open", voice="alert-en"))

        # Same, but returns immediately; failures are logged
        service.dispatch(SynthesisRequest("Laundry is done"), source="washer")
    """

    def __init__(
        self,
        config: HomeSpeakConfig,
        backends: Mapping[str, TTSProvider],
        cache: AudioCache,
        playback: PlaybackQueue | None = None,
    ) -> None:
        """Initialize the speech service.

        Args:
            config: Explicit service configuration
            backends: Provider instances keyed by configured backend identifier
            cache: Audio cache (single-flight coordination lives here)
            playback: Queue receiving synthesized audio; None disables playback

        Raises:
            ConfigurationError: If backends and configuration disagree
        """
        self.config = config
        self.backends = dict(backends)
        self.cache = cache
        self.playback = playback
        self._tasks: set[asyncio.Task[AudioClip | None]] = set()

        self._validate()

        logger.debug(
            f"SpeechService initialized with backends {', '.join(self.backends)}, "
            f"playback={'enabled' if playback else 'disabled'}"
        )

    def _validate(self) -> None:
        default = self.config.speech.default_backend
        if default not in self.backends:
            raise ConfigurationError(f"Default backend '{default}' is not available")

        for backend_id, backend_config in self.config.backends.items():
            if backend_id not in self.backends:
                raise ConfigurationError(f"Backend '{backend_id}' was not instantiated")
            if backend_config.fallback and backend_config.fallback not in self.backends:
                raise ConfigurationError(
                    f"Backend '{backend_id}' falls back to unknown backend "
                    f"'{backend_config.fallback}'"
                )

        for profile in self.config.voices.values():
            provider = self.backends.get(profile.backend)
            if provider is None:
                raise ConfigurationError(
                    f"Voice '{profile.name}' uses unknown backend '{profile.backend}'"
                )
            styles = provider.descriptor.voice_styles
            if profile.style is not None and profile.style not in styles:
                raise ConfigurationError(
                    f"Voice '{profile.name}' uses style '{profile.style}' which "
                    f"{provider.descriptor.identifier} does not support"
                )

    @property
    def descriptors(self) -> dict[str, BackendDescriptor]:
        """Capability descriptors of the configured backends."""
        return {
            backend_id: provider.descriptor
            for backend_id, provider in self.backends.items()
        }

    def backend_chain(self, backend_id: str) -> list[str]:
        """Backends to try, in order, for a request starting at backend_id.

        Follows each backend's configured fallback; stops on a cycle.
        """
        chain = [backend_id]
        backend_config = self.config.backends.get(backend_id)
        while backend_config is not None and backend_config.fallback:
            if backend_config.fallback in chain:
                break
            chain.append(backend_config.fallback)
            backend_config = self.config.backends.get(backend_config.fallback)
        return chain

    def select_backend(self, request: SynthesisRequest) -> str:
        """Pick the backend for a request.

        Explicit request backend, then the voice profile's backend, then the
        default backend.

        Raises:
            ConfigurationError: If the chosen backend is not configured
        """
        profile = self.config.voices.get(request.voice)
        backend_id = (
            request.backend
            or (profile.backend if profile else None)
            or self.config.speech.default_backend
        )
        if backend_id not in self.backends:
            available = ", ".join(self.backends)
            raise ConfigurationError(
                f"Unknown backend '{backend_id}'. Available backends: {available}"
            )
        return backend_id

    def resolve_voice(self, request: SynthesisRequest, backend_id: str) -> VoiceParams:
        """Translate a request's voice identity into params for one backend."""
        profile = self.config.voices.get(request.voice)
        backend_config = self.config.backends.get(backend_id)

        if profile is not None and profile.backend == backend_id:
            return VoiceParams(
                voice=profile.voice,
                style=request.style or profile.style,
                language=profile.language,
                model=profile.model,
            )

        if profile is None and request.voice:
            # Not a configured identity: treat it as a backend-native voice id
            voice = request.voice
        else:
            voice = backend_config.voice if backend_config else None

        # A profile's style only carries over to backends that support it
        style = request.style
        supported = self.backends[backend_id].descriptor.voice_styles
        if style is None and profile is not None and profile.style in supported:
            style = profile.style

        return VoiceParams(
            voice=voice,
            style=style,
            language=backend_config.language if backend_config else None,
            model=backend_config.model if backend_config else None,
        )

    async def synthesize(self, request: SynthesisRequest) -> AudioClip:
        """Return audio for a request from cache or a backend.

        Tries the selected backend and then, only if configured, its fallback
        chain in order.

        Raises:
            SynthesisFailed: If every backend in the chain fails
            ConfigurationError: If the request names an unknown backend
        """
        chain = self.backend_chain(self.select_backend(request))
        failure: SynthesisFailed | None = None

        for position, backend_id in enumerate(chain):
            params = self.resolve_voice(request, backend_id)
            key = fingerprint(request.text, request.voice, backend_id, params)

            try:
                return await self.cache.get_or_synthesize(
                    key, partial(self._call_backend, backend_id, request.text, params)
                )
            except (SynthesisBackendError, CacheError) as e:
                failure = SynthesisFailed(
                    f"Synthesis failed on backend '{backend_id}': {e}",
                    backend=backend_id,
                    fingerprint=key,
                    cause=e,
                )
                if position + 1 < len(chain):
                    logger.warning(
                        f"Backend '{backend_id}' failed ({e}), "
                        f"falling back to '{chain[position + 1]}'"
                    )

        if failure is None:
            raise ConfigurationError(f"No backend to synthesize '{request.text}'")
        raise failure from failure.cause

    async def _call_backend(
        self, backend_id: str, text: str, params: VoiceParams
    ) -> AudioClip:
        provider = self.backends[backend_id]
        timeout = self.config.backends[backend_id].timeout
        logger.debug(f"Calling {backend_id} TTS API for synthesis")
        try:
            return await asyncio.wait_for(provider.synthesize(text, params), timeout)
        except TimeoutError as e:
            raise TTSTimeoutError(
                f"Backend did not respond within {timeout}s",
                original_error=e,
                backend=backend_id,
            ) from e

    async def speak(
        self, request: SynthesisRequest, source: str | None = None
    ) -> AudioClip:
        """Synthesize a request and queue it for playback.

        The playback slot is reserved before synthesis starts, so the phrase
        plays in arrival order regardless of how long synthesis takes.

        Returns:
            The audio handed to the queue

        Raises:
            SynthesisFailed: If synthesis fails (the slot is released)
        """
        sequence = self._reserve(source)
        return await self._speak_reserved(request, sequence)

    def dispatch(
        self, request: SynthesisRequest, source: str | None = None
    ) -> "asyncio.Task[AudioClip | None]":
        """Fire-and-forget variant of speak.

        Reserves the playback slot immediately, then synthesizes in a tracked
        task. Failures are logged and the task resolves to None.
        """
        sequence = self._reserve(source)
        task = asyncio.create_task(self._dispatch(request, sequence, source))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _dispatch(
        self, request: SynthesisRequest, sequence: int | None, source: str | None
    ) -> AudioClip | None:
        try:
            return await self._speak_reserved(request, sequence)
        except (SynthesisFailed, ConfigurationError) as e:
            logger.error(f"Failed to speak request from {source or 'anonymous'}: {e}")
            return None
        except Exception as e:
            logger.exception(
                f"Unexpected error speaking request from {source or 'anonymous'}: {e!r}"
            )
            return None

    def _reserve(self, source: str | None) -> int | None:
        if self.playback is None:
            return None
        return self.playback.reserve(source)

    async def _speak_reserved(
        self, request: SynthesisRequest, sequence: int | None
    ) -> AudioClip:
        try:
            clip = await self.synthesize(request)
        except BaseException:
            if sequence is not None:
                self.playback.abandon(sequence)
            raise

        if sequence is not None:
            self.playback.submit(sequence, clip)
        return clip

    async def list_voices(self, backend_id: str | None = None) -> list[VoiceInfo]:
        """List the voice catalog of a backend (default backend if omitted).

        Raises:
            ConfigurationError: If the backend is unknown
            SynthesisBackendError: If the provider call fails
        """
        backend_id = backend_id or self.config.speech.default_backend
        if backend_id not in self.backends:
            raise ConfigurationError(f"Unknown backend '{backend_id}'")
        return await self.backends[backend_id].list_voices()

    async def aclose(self) -> None:
        """Wait for dispatched requests, drain playback and close providers."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self.playback is not None:
            await self.playback.close()
        for provider in self.backends.values():
            await provider.aclose()
