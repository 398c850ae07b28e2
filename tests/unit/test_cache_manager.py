"""Unit tests for AudioCache single-flight coordination and degradation."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from homespeak.cache.manager import AudioCache
from homespeak.cache.storage import CacheStorage, MemoryCacheStorage
from homespeak.tts.errors import CacheError, SynthesisBackendError, TTSAPIError
from homespeak.tts.models import AudioClip


class CountingSynth:
    """Synthesis callable that counts invocations and can be held open."""

    def __init__(self, data: bytes = b"audio", error: Exception | None = None) -> None:
        self.data = data
        self.error = error
        self.calls = 0
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self) -> AudioClip:
        self.calls += 1
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return AudioClip(self.data)


def broken_storage() -> CacheStorage:
    storage = MagicMock(spec=CacheStorage)
    storage.get.side_effect = CacheError("disk on fire")
    storage.save.side_effect = CacheError("disk on fire")
    return storage


class TestLookupAndStore:
    """Test synchronous lookup and store."""

    def test_lookup_after_store_returns_exact_bytes(self) -> None:
        cache = AudioCache()
        cache.store("primary-a", AudioClip(b"\x00\xffexact"))

        entry = cache.lookup("primary-a")

        assert entry is not None
        assert entry.clip.data == b"\x00\xffexact"

    def test_lookup_miss(self) -> None:
        assert AudioCache().lookup("primary-a") is None

    def test_storage_failure_degrades_to_miss(self) -> None:
        cache = AudioCache(broken_storage())

        assert cache.lookup("primary-a") is None
        assert cache.store("primary-a", AudioClip(b"x")) is None

    def test_storage_failure_raises_in_strict_mode(self) -> None:
        cache = AudioCache(broken_storage(), strict=True)

        with pytest.raises(CacheError):
            cache.lookup("primary-a")
        with pytest.raises(CacheError):
            cache.store("primary-a", AudioClip(b"x"))


class TestGetOrSynthesize:
    """Test single-flight synthesis."""

    @pytest.mark.asyncio
    async def test_miss_synthesizes_and_stores(self) -> None:
        storage = MemoryCacheStorage()
        cache = AudioCache(storage)
        synth = CountingSynth(b"fresh")

        clip = await cache.get_or_synthesize("primary-a", synth)

        assert clip.data == b"fresh"
        assert synth.calls == 1
        assert storage.get("primary-a").clip.data == b"fresh"
        assert cache.in_flight == 0

    @pytest.mark.asyncio
    async def test_hit_skips_synthesis(self) -> None:
        cache = AudioCache()
        cache.store("primary-a", AudioClip(b"cached"))
        synth = CountingSynth()

        clip = await cache.get_or_synthesize("primary-a", synth)

        assert clip.data == b"cached"
        assert synth.calls == 0

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_synthesis(self) -> None:
        """Test concurrent requests for one fingerprint make exactly one call."""
        cache = AudioCache()
        synth = CountingSynth(b"shared")
        synth.release.clear()

        tasks = [
            asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        assert cache.in_flight == 1

        synth.release.set()
        clips = await asyncio.gather(*tasks)

        assert synth.calls == 1
        assert {clip.data for clip in clips} == {b"shared"}

    @pytest.mark.asyncio
    async def test_different_fingerprints_synthesize_independently(self) -> None:
        cache = AudioCache()
        synth = CountingSynth()

        await asyncio.gather(
            cache.get_or_synthesize("primary-a", synth),
            cache.get_or_synthesize("primary-b", synth),
        )

        assert synth.calls == 2

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self) -> None:
        cache = AudioCache()
        synth = CountingSynth(error=TTSAPIError("Server error: 503"))
        synth.release.clear()

        tasks = [
            asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
            for _ in range(3)
        ]
        await asyncio.sleep(0)
        synth.release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert synth.calls == 1
        assert all(isinstance(result, TTSAPIError) for result in results)

    @pytest.mark.asyncio
    async def test_failure_writes_nothing_and_retry_calls_again(self) -> None:
        """Test a failed synthesis is not cached and does not poison the key."""
        storage = MemoryCacheStorage()
        cache = AudioCache(storage)
        failing = CountingSynth(error=TTSAPIError("Server error: 503"))

        with pytest.raises(TTSAPIError):
            await cache.get_or_synthesize("primary-a", failing)

        assert len(storage) == 0
        assert cache.in_flight == 0

        working = CountingSynth(b"second try")
        clip = await cache.get_or_synthesize("primary-a", working)

        assert working.calls == 1
        assert clip.data == b"second try"

    @pytest.mark.asyncio
    async def test_cancelled_owner_releases_waiters(self) -> None:
        """Test waiters are not stranded when the synthesizing task is cancelled."""
        cache = AudioCache()
        synth = CountingSynth()
        synth.release.clear()

        owner = asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
        await asyncio.sleep(0)

        owner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await owner
        with pytest.raises(SynthesisBackendError, match="cancelled"):
            await waiter

        assert cache.in_flight == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_synthesis(self) -> None:
        cache = AudioCache()
        synth = CountingSynth(b"kept")
        synth.release.clear()

        owner = asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_or_synthesize("primary-a", synth))
        await asyncio.sleep(0)

        waiter.cancel()
        synth.release.set()

        assert (await owner).data == b"kept"
        assert synth.calls == 1

    @pytest.mark.asyncio
    async def test_store_failure_still_returns_audio(self) -> None:
        storage = MagicMock(spec=CacheStorage)
        storage.get.return_value = None
        storage.save.side_effect = CacheError("read-only filesystem")
        cache = AudioCache(storage)

        clip = await cache.get_or_synthesize("primary-a", CountingSynth(b"still here"))

        assert clip.data == b"still here"
