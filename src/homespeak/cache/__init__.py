"""Cache management for homespeak TTS audio."""

from .fingerprint import CACHE_FORMAT_VERSION, fingerprint
from .manager import AudioCache
from .models import CacheEntry
from .storage import CacheStorage, DiskCacheStorage, MemoryCacheStorage

__all__ = [
    "CACHE_FORMAT_VERSION",
    "AudioCache",
    "CacheEntry",
    "CacheStorage",
    "DiskCacheStorage",
    "MemoryCacheStorage",
    "fingerprint",
]
