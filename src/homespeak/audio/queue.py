"""Ordered single-consumer playback queue.

Producers reserve a sequence number when a request arrives and submit the
audio whenever synthesis finishes. The consumer releases items strictly in
sequence order, so a phrase whose synthesis finishes late still plays before
every phrase that arrived after it. Only one item is rendered to the sink
at a time.

All state is mutated from synchronous sections on the event loop; producers
never block on playback.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any

from ..tts.errors import PlaybackDeviceError
from ..tts.models import AudioClip, AudioMessage
from .player import AudioSink

logger = logging.getLogger(__name__)


class QueueState(enum.Enum):
    EMPTY = "empty"
    DRAINING = "draining"
    CLOSED = "closed"


class QueueClosedError(RuntimeError):
    """Raised when reserving or enqueueing on a closed queue."""


@dataclass
class _Slot:
    source: str | None
    message: AudioMessage | None = None
    # Withdrawn by cancel() or abandoned after a failed synthesis
    withdrawn: bool = False

    @property
    def resolved(self) -> bool:
        return self.withdrawn or self.message is not None


class PlaybackQueue:
    """Releases audio to a sink one item at a time in arrival order.

    Example:
        queue = PlaybackQueue(AudioPlayer())
        queue.start()

        seq = queue.reserve(source="front-door")
        clip = await provider.synthesize("The front door is open", params)
        queue.submit(seq, clip)

        await queue.join()
    """

    def __init__(self, sink: AudioSink) -> None:
        self.sink = sink
        self._slots: dict[int, _Slot] = {}
        self._next_sequence = 1
        self._next_to_play = 1
        self._current: AudioMessage | None = None
        self._playing: asyncio.Task[None] | None = None
        self._closed = False

        self._changed = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._consumer: asyncio.Task[None] | None = None

        self.played = 0
        self.failed = 0
        self.withdrawn = 0
        self.skipped = 0

    @property
    def state(self) -> QueueState:
        if self._closed:
            return QueueState.CLOSED
        if self._slots or self._current is not None:
            return QueueState.DRAINING
        return QueueState.EMPTY

    @property
    def paused(self) -> bool:
        return not self._resumed.is_set()

    def start(self) -> None:
        """Start the consumer task on the running event loop."""
        if self._consumer is None or self._consumer.done():
            self._consumer = asyncio.create_task(self._process_queue())
            logger.info("Playback queue processor started")

    def reserve(self, source: str | None = None) -> int:
        """Claim the next arrival sequence number.

        Raises:
            QueueClosedError: If the queue is closed
        """
        if self._closed:
            raise QueueClosedError("Playback queue is closed")
        sequence = self._next_sequence
        self._next_sequence += 1
        self._slots[sequence] = _Slot(source=source)
        self._idle.clear()
        logger.debug(f"Reserved playback slot {sequence} for {source or 'anonymous'}")
        return sequence

    def submit(self, sequence: int, clip: AudioClip) -> AudioMessage | None:
        """Attach ready audio to a reserved slot.

        Returns:
            The queued message, or None if the slot was withdrawn meanwhile

        Raises:
            KeyError: If the sequence was never reserved
        """
        slot = self._slots.get(sequence)
        if slot is None:
            if not 0 < sequence < self._next_to_play:
                raise KeyError(sequence)
            # Withdrawn and already passed over by the consumer
            logger.debug(f"Dropping audio for released slot {sequence}")
            return None
        if slot.withdrawn:
            logger.debug(f"Dropping audio for cancelled slot {sequence}")
            return None
        if slot.message is not None:
            raise ValueError(f"Slot {sequence} already has audio")
        slot.message = AudioMessage(sequence=sequence, clip=clip, source=slot.source)
        self._changed.set()
        return slot.message

    def abandon(self, sequence: int) -> None:
        """Release a reserved slot whose synthesis failed so later items can play."""
        slot = self._slots.get(sequence)
        if slot is not None and not slot.resolved:
            slot.withdrawn = True
            self.withdrawn += 1
            self._changed.set()

    def enqueue(self, clip: AudioClip, source: str | None = None) -> AudioMessage:
        """Queue audio that is already available."""
        sequence = self.reserve(source)
        message = AudioMessage(sequence=sequence, clip=clip, source=source)
        self._slots[sequence].message = message
        self._changed.set()
        return message

    def cancel(self, sequence: int) -> bool:
        """Withdraw a pending item.

        Returns:
            True if the item was withdrawn, False if it is already playing,
            played or unknown
        """
        slot = self._slots.get(sequence)
        if slot is None or slot.withdrawn:
            return False
        slot.withdrawn = True
        slot.message = None
        self.withdrawn += 1
        self._changed.set()
        logger.info(f"Cancelled pending playback {sequence}")
        return True

    def skip(self) -> bool:
        """Abort the item currently playing; the next item follows.

        Returns:
            True if an item was playing
        """
        if self._playing is None or self._playing.done():
            return False
        logger.info(f"Skipping item {self._current.sequence}")
        self.sink.stop()
        self._playing.cancel()
        return True

    def stop(self) -> int:
        """Withdraw every pending item and abort the one playing.

        Items reserved afterwards play normally.

        Returns:
            Number of pending items withdrawn
        """
        count = 0
        for slot in self._slots.values():
            if not slot.withdrawn:
                slot.withdrawn = True
                slot.message = None
                count += 1
        self.withdrawn += count
        self._changed.set()
        logger.info(f"Stopping audio, {count} pending items withdrawn")
        self.skip()
        return count

    def restart(self) -> None:
        """Abort the current item and reopen the output device on the next play."""
        logger.info("Restarting audio player")
        self.skip()
        self.sink.reset()

    def pause(self) -> None:
        """Hold the next item; the item currently playing finishes first."""
        logger.info("Pausing audio")
        self._resumed.clear()

    def resume(self) -> None:
        logger.info("Resuming audio")
        self._resumed.set()
        self._changed.set()

    async def join(self) -> None:
        """Wait until every reserved item has been played or withdrawn."""
        await self._idle.wait()

    async def close(self, drain: bool = True) -> None:
        """Stop accepting new items and shut the consumer down.

        Args:
            drain: Play out reserved items first; otherwise stop immediately
        """
        self._closed = True
        if drain:
            self._resumed.set()
        self._changed.set()
        if self._consumer is None:
            return
        if drain:
            await self._consumer
        else:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        logger.info("Playback queue closed")

    def status(self) -> dict[str, Any]:
        """Return current queue status information."""
        return {
            "state": self.state.value,
            "paused": self.paused,
            "queue_size": len(self._slots),
            "current": self._format_message(self._current) if self._current else None,
            "waiting": [
                {"sequence": sequence, "source": slot.source, "ready": slot.resolved}
                for sequence, slot in sorted(self._slots.items())
                if not slot.withdrawn
            ],
            "played": self.played,
            "failed": self.failed,
            "withdrawn": self.withdrawn,
            "skipped": self.skipped,
        }

    def _format_message(self, message: AudioMessage) -> dict[str, Any]:
        return {
            "sequence": message.sequence,
            "source": message.source,
            "content_type": message.clip.content_type,
            "size": len(message.clip),
            "timestamp": message.created_at.isoformat(),
        }

    async def _next_message(self) -> AudioMessage | None:
        """Wait for the next sequence number to resolve; None once closed and drained."""
        while True:
            slot = self._slots.get(self._next_to_play)
            if slot is not None and (slot.withdrawn or (slot.resolved and not self.paused)):
                del self._slots[self._next_to_play]
                self._next_to_play += 1
                if slot.message is not None:
                    return slot.message
                if not self._slots:
                    self._idle.set()
                continue
            if self._closed and not self._slots:
                return None
            self._changed.clear()
            await self._changed.wait()

    async def _process_queue(self) -> None:
        """Process queue items serially to prevent audio overlap."""
        while True:
            message = await self._next_message()
            if message is None:
                break

            self._current = message
            logger.info(
                f"Playing item {message.sequence} "
                f"({len(message.clip)} bytes, source={message.source or 'anonymous'})"
            )
            play = asyncio.create_task(self.sink.play(message.clip))
            self._playing = play
            try:
                await asyncio.wait({play})
                self._record_outcome(message, play)
            finally:
                play.cancel()
                self._current = None
                self._playing = None
                if not self._slots:
                    self._idle.set()

    def _record_outcome(self, message: AudioMessage, play: "asyncio.Task[None]") -> None:
        if play.cancelled():
            self.skipped += 1
            logger.info(f"Item {message.sequence} skipped")
            return
        error = play.exception()
        if error is None:
            self.played += 1
        elif isinstance(error, PlaybackDeviceError):
            self.failed += 1
            logger.error(f"Playback of item {message.sequence} failed: {error}")
        else:
            self.failed += 1
            logger.error(f"Unexpected error playing item {message.sequence}: {error}")
