"""
Cached transcript cost scanner.

Window totals are memoized in the disk cache for a short freshness window
so that repeated status line renders do not rescan the transcript corpus.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Union

from ..storage.cache import TTLCache
from ..storage.errors import CacheMiss, StorageError
from .transcript import scan_transcripts

logger = logging.getLogger(__name__)

TRANSCRIPT_CACHE_TTL = timedelta(minutes=5)


def _local_now() -> datetime:
    return datetime.now().astimezone()


class TranscriptScanner:
    """Computes rolling-window costs from the host's transcript files."""

    def __init__(
        self,
        projects_dir: Union[str, Path],
        cache: TTLCache,
        ttl: timedelta = TRANSCRIPT_CACHE_TTL,
    ):
        """Initialize the scanner.

        Args:
            projects_dir: Root directory of per-project transcript folders
            cache: Disk cache for memoized window totals
            ttl: Freshness window for cached totals
        """
        self.projects_dir = Path(projects_dir)
        self.cache = cache
        self.ttl = ttl

    def calculate_period(self, duration: timedelta) -> float:
        """Return the total cost of usage within the trailing duration."""
        cache_key = f"transcript-cost:{duration}"
        return self._cached(
            cache_key,
            lambda: scan_transcripts(self.projects_dir, datetime.now().astimezone() - duration),
        )

    def calculate_today(self) -> float:
        """Return the total cost of usage since local midnight.

        The cache key carries the local date, so a new day starts from a
        fresh key.
        """
        now = _local_now()
        # Resolve the offset in effect at midnight, which differs from the
        # current one on daylight saving change days.
        midnight = datetime.combine(now.date(), datetime.min.time()).astimezone()
        cache_key = f"transcript-cost:today:{now.date().isoformat()}"
        return self._cached(cache_key, lambda: scan_transcripts(self.projects_dir, midnight))

    def _cached(self, cache_key: str, compute: Callable[[], float]) -> float:
        try:
            return float(self.cache.get(cache_key, self.ttl).decode("ascii"))
        except CacheMiss:
            pass
        except StorageError as e:
            logger.warning("Cannot read cached total %s: %s", cache_key, e)
        except ValueError:
            logger.debug("Ignoring unreadable cached total for %s", cache_key)

        total = compute()
        try:
            self.cache.set(cache_key, f"{total:.6f}".encode("ascii"))
        except StorageError as e:
            logger.warning("Cannot cache total %s: %s", cache_key, e)
        return total
