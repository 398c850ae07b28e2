"""Content-addressed audio cache with single-flight synthesis.

Wraps a CacheStorage so that concurrent requests for the same fingerprint
share one synthesis instead of each paying for a backend call.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ..tts.errors import CacheError, SynthesisBackendError
from ..tts.models import AudioClip
from .models import CacheEntry
from .storage import CacheStorage, MemoryCacheStorage

logger = logging.getLogger(__name__)


class AudioCache:
    """High-level audio cache used by the speech service.

    Storage failures degrade to cache misses (logged as warnings) unless
    ``strict`` is set, in which case they raise CacheError.

    Example:
        cache = AudioCache(DiskCacheStorage(config.cache.directory))

        # Concurrent callers with the same fingerprint share one backend call
        clip = await cache.get_or_synthesize(
            fp, lambda: provider.synthesize("Deploy complete", params)
        )
    """

    def __init__(self, storage: CacheStorage | None = None, strict: bool = False):
        self.storage = storage if storage is not None else MemoryCacheStorage()
        self.strict = strict
        self._in_flight: dict[str, asyncio.Future[AudioClip]] = {}

        logger.debug(
            f"AudioCache initialized with {type(self.storage).__name__} "
            f"(strict={strict})"
        )

    @property
    def in_flight(self) -> int:
        """Number of fingerprints with a synthesis currently outstanding."""
        return len(self._in_flight)

    def lookup(self, fingerprint: str) -> CacheEntry | None:
        """Return the cached entry for a fingerprint, or None on a miss.

        Raises:
            CacheError: Only in strict mode, if storage fails
        """
        try:
            entry = self.storage.get(fingerprint)
        except CacheError as e:
            if self.strict:
                raise
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            return None

        if entry is None:
            logger.debug(f"Cache miss for {fingerprint}")
        else:
            logger.info(f"Using cached value with key {fingerprint}")
        return entry

    def store(self, fingerprint: str, clip: AudioClip) -> CacheEntry | None:
        """Store audio for a fingerprint.

        Returns:
            The stored entry (the existing one if already cached), or None
            if storage failed in non-strict mode

        Raises:
            CacheError: Only in strict mode, if storage fails
        """
        try:
            entry = self.storage.save(CacheEntry(fingerprint=fingerprint, clip=clip))
        except CacheError as e:
            if self.strict:
                raise
            logger.warning(f"Failed to cache audio, continuing without caching: {e}")
            return None

        logger.info(f"Writing new file with key {fingerprint}")
        return entry

    async def get_or_synthesize(
        self,
        fingerprint: str,
        synthesize_fn: Callable[[], Awaitable[AudioClip]],
    ) -> AudioClip:
        """Return cached audio or synthesize it exactly once.

        While a synthesis for the fingerprint is outstanding, further callers
        await the same outcome. On failure the in-flight slot is cleared and
        nothing is cached, so a later call retries.

        Raises:
            SynthesisBackendError: If synthesis fails (shared by all waiters)
            CacheError: Only in strict mode, if storage fails
        """
        # No await between the lookup and registering the future below, so the
        # check-then-claim is atomic on the event loop
        entry = self.lookup(fingerprint)
        if entry is not None:
            return entry.clip

        pending = self._in_flight.get(fingerprint)
        if pending is not None:
            logger.debug(f"Joining in-flight synthesis for {fingerprint}")
            return await asyncio.shield(pending)

        future: asyncio.Future[AudioClip] = asyncio.get_running_loop().create_future()
        self._in_flight[fingerprint] = future
        try:
            clip = await synthesize_fn()
            self.store(fingerprint, clip)
        except asyncio.CancelledError:
            self._fail(
                future, SynthesisBackendError(f"Synthesis for {fingerprint} was cancelled")
            )
            raise
        except Exception as e:
            self._fail(future, e)
            raise
        else:
            future.set_result(clip)
            return clip
        finally:
            del self._in_flight[fingerprint]
            if not future.done():
                future.cancel()

    @staticmethod
    def _fail(future: asyncio.Future[AudioClip], error: BaseException) -> None:
        future.set_exception(error)
        # Mark retrieved so an unawaited failure is not reported at GC;
        # waiters still receive it
        future.exception()
