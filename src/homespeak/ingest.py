"""Ingestion boundary between a message bus and the speech service.

The bus client (MQTT or similar) is owned by the host process; it only needs
to call ``Router.handle_message(topic, payload)`` for every message it
receives. Handlers turn payloads into phrase requests and never raise back
into the transport: malformed messages are logged and dropped.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .tts.errors import ConfigurationError
from .tts.models import AudioClip, SynthesisRequest
from .tts.service import SpeechService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhraseRequest:
    """An already-rendered phrase arriving from a collaborator.

    Args:
        text: Phrase text
        voice: Voice identity
        backend: Optional backend identifier override
        style: Optional speaking style override
        source: Optional producer identity (topic, device) for logging
    """

    text: str
    voice: str = ""
    backend: str | None = None
    style: str | None = None
    source: str | None = None


class IngestionAdapter:
    """Pushes phrase requests into the speech service in arrival order."""

    def __init__(self, service: SpeechService) -> None:
        self.service = service

    def submit(self, phrase: PhraseRequest) -> bool:
        """Dispatch a phrase for synthesis and playback.

        The playback slot is claimed immediately, so phrases play in the
        order they were submitted.

        Returns:
            True if the phrase was accepted, False if it was rejected
        """
        try:
            request = SynthesisRequest(
                text=phrase.text,
                voice=phrase.voice,
                backend=phrase.backend,
                style=phrase.style,
            )
        except ValueError as e:
            logger.warning(f"Dropping phrase from {phrase.source or 'anonymous'}: {e}")
            return False

        try:
            self.service.dispatch(request, source=phrase.source)
        except (ConfigurationError, RuntimeError) as e:
            logger.error(f"Failed to dispatch phrase from {phrase.source}: {e}")
            return False
        return True


class RouteHandler(ABC):
    """Handles messages delivered on one topic."""

    @abstractmethod
    async def call(self, topic: str, payload: bytes) -> None:
        pass


class Router:
    """Routes bus messages to handlers by topic.

    Topics ending in ``/#`` match any topic under that prefix; exact topics
    take precedence.
    """

    def __init__(self) -> None:
        self._table: dict[str, RouteHandler] = {}

    def add_handler(self, topic: str, handler: RouteHandler) -> None:
        self._table[topic] = handler

    def _find(self, topic: str) -> RouteHandler | None:
        handler = self._table.get(topic)
        if handler is not None:
            return handler
        for pattern, candidate in self._table.items():
            if pattern.endswith("/#") and topic.startswith(pattern[:-1]):
                return candidate
        return None

    async def handle_message(self, topic: str, payload: bytes) -> bool:
        """Deliver a message to its handler.

        Returns:
            True if a handler was found for the topic
        """
        handler = self._find(topic)
        if handler is None:
            logger.debug(f"No handler for topic {topic}")
            return False
        try:
            await handler.call(topic, payload)
        except Exception as e:
            logger.error(f"Handler for {topic} failed: {e}")
        return True


class SayHandler(RouteHandler):
    """JSON say command: ``{"content": ..., "voice"?, "backend"?, "style"?}``."""

    def __init__(self, adapter: IngestionAdapter) -> None:
        self.adapter = adapter

    async def call(self, topic: str, payload: bytes) -> None:
        logger.info("say command")
        try:
            command = json.loads(payload)
            content = command["content"]
            if not isinstance(content, str):
                raise TypeError("content must be a string")
            # null means "not given" for the optional fields
            options = {name: command.get(name) for name in ("voice", "backend", "style")}
            for name, value in options.items():
                if value is not None and not isinstance(value, str):
                    raise TypeError(f"{name} must be a string")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Malformed say command on {topic}: {e}")
            return

        self.adapter.submit(
            PhraseRequest(
                text=content,
                voice=options["voice"] or "",
                backend=options["backend"],
                style=options["style"],
                source=topic,
            )
        )


class SayVoiceHandler(RouteHandler):
    """Plain-text phrase; the voice identity is the last topic segment.

    With a fixed ``voice`` the topic is ignored, e.g. for a default-voice topic.
    """

    def __init__(self, adapter: IngestionAdapter, voice: str | None = None) -> None:
        self.adapter = adapter
        self.voice = voice

    async def call(self, topic: str, payload: bytes) -> None:
        voice = self.voice if self.voice is not None else topic.rsplit("/", 1)[-1]
        logger.info(f"say command with voice {voice or 'default'}")
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.warning(f"Phrase on {topic} is not valid UTF-8: {e}")
            return
        self.adapter.submit(PhraseRequest(text=text, voice=voice, source=topic))


class PlayAudioHandler(RouteHandler):
    """Raw audio bytes played as-is, in order with synthesized phrases."""

    def __init__(self, service: SpeechService, content_type: str = "audio/mpeg") -> None:
        self.service = service
        self.content_type = content_type

    async def call(self, topic: str, payload: bytes) -> None:
        if self.service.playback is None:
            logger.warning("Playback is disabled, ignoring audio message")
            return
        if not payload:
            logger.warning(f"Empty audio payload on {topic}")
            return
        self.service.playback.enqueue(AudioClip(payload, self.content_type), source=topic)


class PlaybackControlHandler(RouteHandler):
    """Text commands for the playback queue.

    ``pause`` and ``resume`` hold and release the queue between items.
    ``skip`` aborts the item playing, ``stop`` also withdraws everything
    pending, and ``restart`` aborts the item and reopens the output device.
    ``volume <0.0-1.0>`` sets the sink volume.
    """

    def __init__(self, service: SpeechService) -> None:
        self.service = service

    async def call(self, topic: str, payload: bytes) -> None:
        playback = self.service.playback
        if playback is None:
            logger.warning("Playback is disabled, ignoring control message")
            return

        command, _, argument = payload.decode("utf-8", errors="replace").strip().partition(" ")
        if command == "pause":
            playback.pause()
        elif command == "resume":
            playback.resume()
        elif command == "skip":
            playback.skip()
        elif command == "stop":
            playback.stop()
        elif command == "restart":
            playback.restart()
        elif command == "volume":
            try:
                playback.sink.set_volume(float(argument))
            except ValueError as e:
                logger.warning(f"Invalid volume '{argument}': {e}")
        else:
            logger.warning(f"Unknown playback command '{command}' on {topic}")


def build_router(service: SpeechService, prefix: str = "homespeak") -> Router:
    """Create a router with the standard topics under ``prefix``.

    - ``<prefix>/say``: JSON say command
    - ``<prefix>/say/voice/<identity>``: plain text in the given voice
    - ``<prefix>/audio/play``: raw MP3 bytes
    - ``<prefix>/playback``: playback control
    """
    adapter = IngestionAdapter(service)
    router = Router()
    router.add_handler(f"{prefix}/say", SayHandler(adapter))
    router.add_handler(f"{prefix}/say/voice/#", SayVoiceHandler(adapter))
    router.add_handler(f"{prefix}/audio/play", PlayAudioHandler(service))
    router.add_handler(f"{prefix}/playback", PlaybackControlHandler(service))
    return router
