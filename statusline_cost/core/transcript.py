"""
Transcript parsing and scanning.

Transcripts are newline-delimited JSON written by the host application,
one event per line. Only assistant events carrying a real model id, token
usage and a timestamp are priced; every other line is skipped. Unknown
fields are ignored.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..storage.errors import ParseError
from ..storage.models import parse_timestamp
from .pricing import calculate_cost
from .token_counter import TokenUsage

logger = logging.getLogger(__name__)

ASSISTANT_TYPE = "assistant"
TRANSCRIPT_SUFFIX = ".jsonl"
TOOL_RESULTS_DIR = "tool-results"


@dataclass(frozen=True)
class UsageRecord:
    """Token usage of one assistant turn."""
    model: str
    usage: TokenUsage
    timestamp: datetime

    @property
    def cost(self) -> float:
        """USD cost of this record."""
        return calculate_cost(self.model, self.usage)


def _token_count(usage: Dict[str, Any], field: str) -> int:
    value = usage.get(field)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ParseError(f"{field} is not an integer: {value!r}")
    return value


def _decode(line: Union[str, bytes]) -> Optional[UsageRecord]:
    """Decode one transcript line.

    Returns:
        The usage record, or None for well-formed lines that are not
        billable assistant turns

    Raises:
        ParseError: If the line is not valid JSON or a known field has the
            wrong type
    """
    try:
        raw = json.loads(line)
    except ValueError as e:
        raise ParseError(f"Malformed transcript line: {e}") from e
    if not isinstance(raw, dict):
        raise ParseError("Transcript line is not a JSON object")

    if raw.get("type") != ASSISTANT_TYPE:
        return None

    message = raw.get("message") or {}
    if not isinstance(message, dict):
        raise ParseError("message is not an object")

    model = message.get("model") or ""
    if not isinstance(model, str):
        raise ParseError("message.model is not a string")
    # Placeholder ids such as "<synthetic>" are not billable.
    if not model or model.startswith("<"):
        return None

    usage = message.get("usage") or {}
    if not isinstance(usage, dict):
        raise ParseError("message.usage is not an object")

    return UsageRecord(
        model=model,
        usage=TokenUsage(
            input_tokens=_token_count(usage, "input_tokens"),
            output_tokens=_token_count(usage, "output_tokens"),
            cache_write_tokens=_token_count(usage, "cache_creation_input_tokens"),
            cache_read_tokens=_token_count(usage, "cache_read_input_tokens"),
        ),
        timestamp=parse_timestamp(raw.get("timestamp")),
    )


def parse_usage_record(line: Union[str, bytes]) -> Optional[UsageRecord]:
    """Parse a transcript line into a usage record.

    Args:
        line: One JSONL line

    Returns:
        UsageRecord, or None if the line is malformed or not a billable
        assistant turn
    """
    try:
        return _decode(line)
    except ParseError:
        return None


def scan_file(path: Union[str, Path], cutoff: datetime) -> float:
    """Sum the cost of every usage record in a file newer than cutoff.

    A file that cannot be opened or read contributes nothing.

    Args:
        path: Transcript file
        cutoff: Timezone-aware lower bound (exclusive)

    Returns:
        Total USD cost
    """
    total = 0.0
    skipped = 0
    try:
        with open(path, "rb") as handle:
            for line in handle:
                if not line.strip():
                    continue
                record = parse_usage_record(line)
                if record is None:
                    skipped += 1
                    continue
                if record.timestamp > cutoff:
                    total += record.cost
    except OSError as e:
        logger.debug("Cannot read transcript %s: %s", path, e)
        return total

    if skipped:
        logger.debug("Skipped %d non-billable lines in %s", skipped, path)
    return total


def scan_transcripts(root: Union[str, Path], cutoff: datetime) -> float:
    """Walk root recursively and sum transcript costs newer than cutoff.

    Tool-result directories are not descended into, non-transcript files
    are ignored, and files last modified before the cutoff are skipped
    without being opened. A missing root yields 0.0.

    Args:
        root: Projects directory holding per-project transcript folders
        cutoff: Timezone-aware lower bound (exclusive)

    Returns:
        Total USD cost
    """
    total = 0.0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [name for name in dirnames if name != TOOL_RESULTS_DIR]
        for filename in filenames:
            if not filename.endswith(TRANSCRIPT_SUFFIX):
                continue
            path = os.path.join(dirpath, filename)
            try:
                mtime = os.stat(path).st_mtime
            except OSError:
                continue
            if datetime.fromtimestamp(mtime, tz=timezone.utc) < cutoff:
                continue
            total += scan_file(path, cutoff)
    return total
