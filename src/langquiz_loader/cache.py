"""
On-disk content-addressed cache for provider responses.

Every remote fetch of the loader goes through ``ContentCache.get``: the value
stored under a key is returned as is, and only a missing key calls the
producer. A key maps to one value for the lifetime of the cache directory;
stale entries are removed by deleting files by hand.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

from .exceptions import CacheIOError

logger = logging.getLogger("langquiz-loader")


class LookupStatus(str, Enum):
    """Outcome of reading a cache entry."""
    HIT = "hit"
    MISS = "miss"
    CORRUPT = "corrupt"


@dataclass
class CacheLookup:
    """Result of ``ContentCache.lookup``.

    Attributes:
        status: Whether the entry was found, missing or unreadable.
        path: File backing the key.
        value: Decoded JSON value for a hit, None otherwise.
        error: Underlying exception for a corrupt entry.
    """
    status: LookupStatus
    path: Path
    value: Any = None
    error: Exception | None = None


@dataclass
class ContentCacheStats:
    """Counters for one cache instance.

    Attributes:
        hit_count: Lookups answered from disk.
        miss_count: Lookups that called the producer.
        write_count: Entries written to disk.
        hit_rate: Ratio of hits to total lookups (0.0-1.0).
    """
    hit_count: int
    miss_count: int
    write_count: int
    hit_rate: float


class ContentCache:
    """JSON file cache rooted at a directory.

    Keys are relative POSIX paths (``skills/DUOLINGO_VI_EN.json``). Parent
    directories are created on demand. Writes land in a temporary file that
    is then moved into place, so a crash never leaves a truncated entry.

    Usage:
        cache = ContentCache(Path("out"))
        courses = await cache.get("courses.json", provider.get_courses)
    """

    def __init__(self, root: Path) -> None:
        """Initialize the cache.

        Args:
            root: Base directory of the cache tree. Created lazily.
        """
        self.root = Path(root)
        self._hit_count = 0
        self._miss_count = 0
        self._write_count = 0

    def path_for(self, key: str) -> Path:
        """Map a key to its file, refusing keys that leave the cache root.

        Raises:
            CacheIOError: If the key is absolute, empty, contains a NUL byte or
                has ``..``/empty segments.
        """
        segments = key.split("/")
        if "\x00" in key or any(segment in ("", ".", "..") for segment in segments):
            raise CacheIOError(f"Invalid cache key: {key!r}", details={"key": key})
        return self.root.joinpath(*segments)

    def lookup(self, key: str) -> CacheLookup:
        """Read a cache entry without populating it.

        A missing file is a miss. A file that cannot be read or decoded is
        reported as corrupt rather than raised, so callers decide what to do.
        """
        path = self.path_for(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return CacheLookup(status=LookupStatus.MISS, path=path)
        except (OSError, UnicodeDecodeError) as e:
            return CacheLookup(status=LookupStatus.CORRUPT, path=path, error=e)

        try:
            value = json.loads(text)
        except json.JSONDecodeError as e:
            return CacheLookup(status=LookupStatus.CORRUPT, path=path, error=e)

        return CacheLookup(status=LookupStatus.HIT, path=path, value=value)

    async def get(self, key: str, producer: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key``, populating it on a miss.

        Args:
            key: Cache key (relative path)
            producer: Coroutine function computing the value on a miss

        Returns:
            The stored value, or the producer's result after it was stored

        Raises:
            CacheIOError: If the entry exists but is unreadable, or the
                produced value cannot be written
            Exception: Whatever the producer raises; nothing is stored then
        """
        result = self.lookup(key)

        if result.status is LookupStatus.HIT:
            self._hit_count += 1
            logger.debug(f"Cache hit: {result.path}")
            return result.value

        if result.status is LookupStatus.CORRUPT:
            raise CacheIOError(
                f"Unreadable cache entry {result.path}: {result.error}. "
                "Delete the file to fetch it again.",
                path=str(result.path),
            ) from result.error

        self._miss_count += 1
        logger.info(f"Cache miss: {result.path}")
        value = await producer()
        self.store(key, value)
        return value

    def store(self, key: str, value: Any) -> Path:
        """Write a value under ``key``.

        Not part of normal operation outside ``get``; an existing entry is
        replaced.

        Raises:
            CacheIOError: If the value is not JSON-serializable or the write fails.
        """
        path = self.path_for(key)
        try:
            payload = json.dumps(value, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheIOError(
                f"Value for cache key {key!r} is not JSON-serializable: {e}",
                path=str(path),
            ) from e

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheIOError(f"Failed to write cache entry {path}: {e}", path=str(path)) from e

        self._write_count += 1
        logger.info(f"Cache write: {path}")
        return path

    def get_stats(self) -> ContentCacheStats:
        """Return cache counters for this instance."""
        total_lookups = self._hit_count + self._miss_count
        hit_rate = self._hit_count / total_lookups if total_lookups > 0 else 0.0

        return ContentCacheStats(
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            write_count=self._write_count,
            hit_rate=hit_rate,
        )


__all__ = [
    "ContentCache",
    "CacheLookup",
    "ContentCacheStats",
    "LookupStatus",
]
