"""
Append-only cost ledger.

Newline-delimited JSON file of session cost snapshots. Appends are single
``write`` calls; compaction rewrites the file through a temporary file and
an atomic rename so readers only ever see the old or the new ledger.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import ParseError, StorageError
from .models import LedgerEntry

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=31)
DEFAULT_COMPACTION_INTERVAL = timedelta(hours=1)
MARKER_SUFFIX = ".compacted"


@dataclass(frozen=True)
class CompactionResult:
    """Outcome of one compaction pass."""
    retained: int
    dropped: int


class CostLedger:
    """Append-only log of point-in-time session costs.

    Successive snapshots for a session are all kept on disk; window totals
    count only the latest snapshot per session.
    """

    def __init__(
        self,
        path: Union[str, Path],
        retention: timedelta = DEFAULT_RETENTION,
        compaction_interval: timedelta = DEFAULT_COMPACTION_INTERVAL,
    ):
        """Initialize the ledger.

        Args:
            path: Ledger file path. Parent directories are created on append.
            retention: Entries older than this are dropped by compaction
            compaction_interval: Minimum age of the compaction marker before
                an append triggers another compaction pass
        """
        self.path = Path(path)
        self.retention = retention
        self.compaction_interval = compaction_interval

    @property
    def marker_path(self) -> Path:
        """Sidecar file whose modification time throttles compaction."""
        return self.path.with_name(self.path.name + MARKER_SUFFIX)

    def append(self, entry: LedgerEntry) -> None:
        """Append one entry as a single line, then compact if due.

        A failed opportunistic compaction is logged; the appended entry is
        already durable at that point.

        Args:
            entry: Snapshot to record

        Raises:
            StorageError: If the directory cannot be created or the line
                cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create ledger directory {self.path.parent}: {e}") from e

        data = (entry.to_json() + "\n").encode("utf-8")
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o644)
        except OSError as e:
            raise StorageError(f"Cannot open ledger {self.path}: {e}") from e
        try:
            os.write(fd, data)
        except OSError as e:
            raise StorageError(f"Cannot write ledger {self.path}: {e}") from e
        finally:
            os.close(fd)

        try:
            self.maybe_compact()
        except StorageError as e:
            logger.warning("Ledger compaction failed: %s", e)

    def maybe_compact(self) -> Optional[CompactionResult]:
        """Compact only if the marker is missing or older than the interval.

        Returns:
            The compaction result, or None when the throttle skipped it

        Raises:
            StorageError: If a due compaction fails
        """
        try:
            marker_age = time.time() - self.marker_path.stat().st_mtime
        except FileNotFoundError:
            marker_age = None
        except OSError as e:
            raise StorageError(f"Cannot stat compaction marker {self.marker_path}: {e}") from e

        if marker_age is not None and marker_age <= self.compaction_interval.total_seconds():
            return None
        return self.compact()

    def compact(self) -> CompactionResult:
        """Drop entries older than the retention horizon.

        Reads a snapshot of the ledger, keeps the lines of entries newer
        than the horizon, writes them to a temporary file in the same
        directory and renames it over the ledger. Malformed lines are
        dropped. The marker is touched even when nothing was dropped.

        Returns:
            Counts of retained and dropped lines

        Raises:
            StorageError: If the ledger cannot be read or replaced
        """
        cutoff = datetime.now().astimezone() - self.retention
        retained: List[str] = []
        dropped = 0
        try:
            for line, entry in self._scan():
                if entry is not None and entry.timestamp > cutoff:
                    retained.append(line)
                else:
                    dropped += 1
        except FileNotFoundError:
            return CompactionResult(retained=0, dropped=0)

        self._replace(retained)
        self._touch_marker()
        logger.debug(
            "Compacted ledger %s: retained=%d dropped=%d", self.path, len(retained), dropped
        )
        return CompactionResult(retained=len(retained), dropped=dropped)

    def calculate_period(self, duration: timedelta) -> float:
        """Sum the latest cost per session over entries newer than now - duration.

        A session's cost only grows as snapshots are appended, so only the
        newest snapshot of each session counts. When two snapshots share a
        timestamp the later line wins.

        Args:
            duration: Trailing window ending now

        Returns:
            Window total; 0.0 when the ledger does not exist

        Raises:
            StorageError: If the ledger exists but cannot be read
        """
        cutoff = datetime.now().astimezone() - duration
        latest: Dict[str, LedgerEntry] = {}
        try:
            for _, entry in self._scan():
                if entry is None or entry.timestamp <= cutoff:
                    continue
                current = latest.get(entry.session_id)
                if current is None or entry.timestamp >= current.timestamp:
                    latest[entry.session_id] = entry
        except FileNotFoundError:
            return 0.0
        return sum(entry.cost for entry in latest.values())

    def read_entries(self) -> List[LedgerEntry]:
        """Return every parseable entry in file order.

        Raises:
            StorageError: If the ledger exists but cannot be read
        """
        try:
            return [entry for _, entry in self._scan() if entry is not None]
        except FileNotFoundError:
            return []

    def _scan(self) -> Iterator[Tuple[str, Optional[LedgerEntry]]]:
        """Yield (line, entry) pairs; entry is None for malformed lines.

        Blank lines are skipped and lines that are not valid UTF-8 count as
        malformed. FileNotFoundError propagates so callers can treat a
        missing ledger as empty.
        """
        try:
            handle = open(self.path, "rb")
        except FileNotFoundError:
            raise
        except OSError as e:
            raise StorageError(f"Cannot open ledger {self.path}: {e}") from e

        with handle:
            try:
                for raw_line in handle:
                    try:
                        line = raw_line.decode("utf-8")
                    except UnicodeDecodeError:
                        yield raw_line.decode("utf-8", errors="replace").rstrip("\r\n"), None
                        continue
                    line = line.rstrip("\r\n")
                    if not line.strip():
                        continue
                    yield line, _parse_entry(line)
            except OSError as e:
                raise StorageError(f"Cannot read ledger {self.path}: {e}") from e

    def _replace(self, lines: List[str]) -> None:
        """Atomically replace the ledger with the given lines."""
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=self.path.name + ".", suffix=".tmp"
            )
        except OSError as e:
            raise StorageError(f"Cannot create temporary ledger in {self.path.parent}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                for line in lines:
                    tmp.write(line + "\n")
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, self.path)
        except OSError as e:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageError(f"Cannot replace ledger {self.path}: {e}") from e

    def _touch_marker(self) -> None:
        try:
            self.marker_path.touch()
        except OSError as e:
            raise StorageError(f"Cannot touch compaction marker {self.marker_path}: {e}") from e


def _parse_entry(line: str) -> Optional[LedgerEntry]:
    try:
        return LedgerEntry.from_json(line)
    except ParseError:
        return None
