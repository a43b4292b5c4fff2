"""
Data models for the storage layer.

Defines the ledger entry and its one-line JSON codec.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime

from .errors import ParseError

# Fractional seconds beyond microsecond precision are truncated.
_FRACTION_RE = re.compile(r"(\.\d{1,6})\d*")


def parse_timestamp(text: str) -> datetime:
    """Parse an RFC3339 timestamp into a timezone-aware datetime.

    Accepts a trailing ``Z`` and fractional seconds of any precision.

    Args:
        text: Timestamp string such as ``2026-02-15T14:48:28.920Z``

    Returns:
        Timezone-aware datetime

    Raises:
        ParseError: If the value is not a string, is malformed, or has no
            UTC offset
    """
    if not isinstance(text, str) or not text:
        raise ParseError(f"Invalid timestamp: {text!r}")

    normalized = text.strip()
    if normalized[-1:] in ("Z", "z"):
        normalized = normalized[:-1] + "+00:00"
    normalized = _FRACTION_RE.sub(lambda m: m.group(1).ljust(7, "0"), normalized, count=1)

    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ParseError(f"Invalid timestamp: {text!r}") from e
    if parsed.tzinfo is None:
        raise ParseError(f"Timestamp has no UTC offset: {text!r}")
    return parsed


def format_timestamp(value: datetime) -> str:
    """Format a timezone-aware datetime as RFC3339 with fractional seconds."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.isoformat(timespec="microseconds")


@dataclass(frozen=True)
class LedgerEntry:
    """Point-in-time cost snapshot for one session.

    Several entries may share a session id. The latest one is authoritative
    when summing a window.
    """
    session_id: str
    cost: float
    timestamp: datetime

    def to_json(self) -> str:
        """Serialize as one JSON object without a trailing newline."""
        return json.dumps(
            {
                "session_id": self.session_id,
                "cost": self.cost,
                "timestamp": format_timestamp(self.timestamp),
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, line: str) -> "LedgerEntry":
        """Parse one ledger line.

        Raises:
            ParseError: If the line is not a JSON object with a string
                session_id, a numeric cost and a valid timestamp
        """
        try:
            raw = json.loads(line)
        except ValueError as e:
            raise ParseError(f"Malformed ledger line: {e}") from e
        if not isinstance(raw, dict):
            raise ParseError("Ledger line is not a JSON object")

        session_id = raw.get("session_id")
        cost = raw.get("cost")
        if not isinstance(session_id, str):
            raise ParseError("Ledger line has no string session_id")
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            raise ParseError("Ledger line has no numeric cost")

        return cls(
            session_id=session_id,
            cost=float(cost),
            timestamp=parse_timestamp(raw.get("timestamp")),
        )
