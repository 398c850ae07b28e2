"""Cache storage implementations.

MemoryCacheStorage keeps audio in process memory. DiskCacheStorage stores
entry metadata in SQLite while audio blobs live as files named after their
fingerprint, so the cache survives restarts.
"""

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime
from pathlib import Path

from ..tts.errors import CacheError
from ..tts.models import AudioClip
from .models import CacheEntry

logger = logging.getLogger(__name__)


class CacheStorage(ABC):
    """Fingerprint-addressed storage for cache entries.

    Implementations raise CacheError when the backing store fails.
    """

    @abstractmethod
    def get(self, fingerprint: str) -> CacheEntry | None:
        """Return the entry for a fingerprint, or None on a miss."""

    @abstractmethod
    def save(self, entry: CacheEntry) -> CacheEntry:
        """Persist an entry and return the stored one.

        If an entry already exists for the fingerprint it is kept unchanged
        and returned instead.
        """

    @abstractmethod
    def __len__(self) -> int:
        pass


class MemoryCacheStorage(CacheStorage):
    """In-memory storage, unbounded unless max_entries is given.

    With max_entries set, the least recently used entry is evicted once the
    limit is exceeded.
    """

    def __init__(self, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def get(self, fingerprint: str) -> CacheEntry | None:
        entry = self._entries.get(fingerprint)
        if entry is not None:
            self._entries.move_to_end(fingerprint)
        return entry

    def save(self, entry: CacheEntry) -> CacheEntry:
        existing = self._entries.get(entry.fingerprint)
        if existing is not None:
            return existing

        self._entries[entry.fingerprint] = entry
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted cache entry {evicted}")
        return entry

    def __len__(self) -> int:
        return len(self._entries)


class DiskCacheStorage(CacheStorage):
    """SQLite-backed storage for cached audio.

    Stores entry metadata in a SQLite database while audio files are stored
    separately on the filesystem as ``audio/<fingerprint>.<ext>``.
    """

    def __init__(self, cache_dir: Path):
        """Initialize cache storage with database in given directory.

        Args:
            cache_dir: Directory containing cache database and audio files

        Raises:
            CacheError: If the directory or database cannot be created
        """
        self.cache_dir = cache_dir
        self.audio_dir = cache_dir / "audio"
        self.db_path = cache_dir / "cache.db"

        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (sqlite3.Error, OSError) as e:
            raise CacheError(f"Failed to open cache at {cache_dir}: {e}", e) from e

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,  # Allow use across threads
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db(self) -> None:
        """Initialize database schema."""
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache (
                    fingerprint TEXT PRIMARY KEY,
                    audio_path TEXT NOT NULL,
                    content_type TEXT NOT NULL,
                    size INTEGER NOT NULL,
                    timestamp TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def get(self, fingerprint: str) -> CacheEntry | None:
        """Retrieve cache entry by fingerprint.

        Returns:
            Cache entry if found, None otherwise

        Raises:
            CacheError: If the database or audio file cannot be read
        """
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    """
                    SELECT audio_path, content_type, timestamp
                    FROM cache
                    WHERE fingerprint = ?
                """,
                    (fingerprint,),
                ).fetchone()
            finally:
                conn.close()

            if row is None:
                return None

            audio_path = Path(row["audio_path"])
            if not audio_path.exists():
                logger.warning(
                    f"Cache corruption: metadata exists but audio file missing: {audio_path}"
                )
                return None

            data = audio_path.read_bytes()
        except (sqlite3.Error, OSError) as e:
            raise CacheError(f"Failed to read cache entry {fingerprint}: {e}", e) from e

        if not data:
            logger.warning(f"Cache corruption: empty audio file: {audio_path}")
            return None

        return CacheEntry(
            fingerprint=fingerprint,
            clip=AudioClip(data, row["content_type"]),
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )

    def save(self, entry: CacheEntry) -> CacheEntry:
        """Save cache entry: audio file first, then metadata.

        Raises:
            CacheError: If the audio file or metadata cannot be written
        """
        existing = self.get(entry.fingerprint)
        if existing is not None:
            return existing

        audio_path = self.audio_dir / f"{entry.fingerprint}.{entry.clip.extension}"
        tmp_path = audio_path.with_name(audio_path.name + ".tmp")
        try:
            tmp_path.write_bytes(entry.clip.data)
            os.replace(tmp_path, audio_path)

            conn = self._get_connection()
            try:
                conn.execute(
                    """
                    INSERT OR IGNORE INTO cache
                        (fingerprint, audio_path, content_type, size, timestamp)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        entry.fingerprint,
                        str(audio_path),
                        entry.clip.content_type,
                        len(entry.clip),
                        entry.timestamp.isoformat(),
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            tmp_path.unlink(missing_ok=True)
            raise CacheError(
                f"Failed to write cache entry {entry.fingerprint}: {e}", e
            ) from e

        logger.debug(f"Saved audio file: {audio_path}")
        return entry

    def __len__(self) -> int:
        try:
            conn = self._get_connection()
            try:
                return conn.execute("SELECT COUNT(*) FROM cache").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise CacheError(f"Failed to count cache entries: {e}", e) from e
