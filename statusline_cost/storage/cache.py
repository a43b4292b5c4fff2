"""
TTL-based disk cache.

One regular file per entry, named by the SHA-256 hex digest of the lookup
key. File contents are the raw cached bytes and the modification time is
the only freshness signal. Freshness is decided at read time, so the same
stored bytes can be fresh for one caller and stale for another.
"""

import hashlib
import logging
import os
import time
from datetime import timedelta
from pathlib import Path
from typing import Union

from .errors import Expired, NotFound, StorageError

logger = logging.getLogger(__name__)


class TTLCache:
    """Content-addressed key/value store on disk with read-time expiry."""

    def __init__(self, directory: Union[str, Path]):
        """Initialize the cache with its storage directory.

        Args:
            directory: Directory holding one file per entry. Created lazily
                on the first write.
        """
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        """Return the on-disk path for a key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / digest

    def set(self, key: str, value: bytes) -> None:
        """Store value under key, fully replacing any previous entry.

        Args:
            key: Arbitrary lookup key
            value: Raw bytes to store

        Raises:
            StorageError: If the directory cannot be created or the file
                cannot be written
        """
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create cache directory {path.parent}: {e}") from e
        try:
            path.write_bytes(value)
        except OSError as e:
            raise StorageError(f"Cannot write cache entry {path}: {e}") from e

    def get(self, key: str, ttl: timedelta) -> bytes:
        """Return the bytes stored under key if younger than ttl.

        Expired entries are reported but left on disk until `prune` runs.

        Args:
            key: Lookup key
            ttl: Maximum age for the entry to count as fresh

        Returns:
            The stored bytes

        Raises:
            NotFound: If no entry exists for key
            Expired: If the entry is older than ttl
            StorageError: If the entry exists but cannot be read
        """
        path = self.path_for(key)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            raise NotFound(f"No cache entry for key {key!r}", key) from None
        except OSError as e:
            raise StorageError(f"Cannot stat cache entry {path}: {e}") from e

        age = time.time() - mtime
        ttl_seconds = ttl.total_seconds()
        if age > ttl_seconds:
            raise Expired(
                f"Cache entry for key {key!r} expired (age: {age:.1f}s, ttl: {ttl_seconds:.1f}s)",
                key,
                age_seconds=age,
                ttl_seconds=ttl_seconds,
            )

        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise NotFound(f"No cache entry for key {key!r}", key) from None
        except OSError as e:
            raise StorageError(f"Cannot read cache entry {path}: {e}") from e

    def prune(self, max_age: timedelta) -> int:
        """Remove every entry older than max_age.

        Errors on individual entries (permissions, concurrent deletion) are
        ignored so one bad entry never blocks pruning the rest.

        Args:
            max_age: Entries whose age exceeds this are deleted

        Returns:
            Number of entries removed

        Raises:
            StorageError: If the cache directory cannot be listed
        """
        try:
            entries = list(os.scandir(self.directory))
        except OSError as e:
            raise StorageError(f"Cannot list cache directory {self.directory}: {e}") from e

        cutoff = time.time() - max_age.total_seconds()
        removed = 0
        for entry in entries:
            try:
                if not entry.is_file(follow_symlinks=False):
                    continue
                if entry.stat(follow_symlinks=False).st_mtime < cutoff:
                    os.remove(entry.path)
                    removed += 1
            except OSError as e:
                logger.debug("Skipping cache entry %s during prune: %s", entry.path, e)
                continue

        if removed:
            logger.info("Pruned %d cache entries from %s", removed, self.directory)
        return removed
