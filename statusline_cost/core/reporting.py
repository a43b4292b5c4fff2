"""
Cost segments for the status line.

Thin formatters over the scanner and the ledger. A failure in any segment
renders a zero amount rather than breaking the status line.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Union

from ..storage.errors import StorageError
from ..storage.ledger import CostLedger
from ..storage.models import LedgerEntry
from .scanner import TranscriptScanner

logger = logging.getLogger(__name__)

MONTHLY_WINDOW = timedelta(days=30)
WEEKLY_WINDOW = timedelta(days=7)
SEGMENT_SEPARATOR = " | "


@dataclass(frozen=True)
class StatusInput:
    """The fields of the host's status payload used by the cost segments."""
    session_id: str = ""
    total_cost_usd: float = 0.0


def parse_status_input(payload: Union[str, bytes]) -> StatusInput:
    """Extract session id and live cost from the host's JSON payload.

    Malformed payloads and wrongly typed fields fall back to defaults.
    """
    try:
        raw = json.loads(payload) if payload else {}
    except ValueError:
        logger.warning("Status payload is not valid JSON")
        return StatusInput()
    if not isinstance(raw, dict):
        return StatusInput()

    session_id = raw.get("session_id")
    if not isinstance(session_id, str):
        session_id = ""

    cost_info = raw.get("cost")
    total_cost = cost_info.get("total_cost_usd") if isinstance(cost_info, dict) else None
    if isinstance(total_cost, bool) or not isinstance(total_cost, (int, float)):
        total_cost = 0.0

    return StatusInput(session_id=session_id, total_cost_usd=float(total_cost))


def format_amount(label: str, amount: float) -> str:
    """Format a labelled dollar amount, e.g. ``7DAY $1.23``."""
    return f"{label} ${amount:.2f}"


class LiveCostReporter:
    """Displays the live session cost and records it in the ledger."""

    def __init__(self, ledger: CostLedger):
        self.ledger = ledger

    def report(self, status: StatusInput) -> str:
        """Record a snapshot for sessions with a positive cost and format it."""
        if status.session_id and status.total_cost_usd > 0:
            entry = LedgerEntry(
                session_id=status.session_id,
                cost=status.total_cost_usd,
                timestamp=datetime.now().astimezone(),
            )
            try:
                self.ledger.append(entry)
            except StorageError as e:
                logger.warning("Cannot record live cost for %s: %s", status.session_id, e)
        return format_amount("LIVE", status.total_cost_usd)


def period_segment(label: str, compute: Callable[[], float]) -> str:
    """Format a window total, rendering zero if the computation fails."""
    try:
        total = compute()
    except Exception as e:
        logger.warning("Cannot compute %s cost: %s", label, e)
        total = 0.0
    return format_amount(label, total)


def render_cost_line(
    scanner: TranscriptScanner,
    reporter: LiveCostReporter,
    status: StatusInput,
) -> str:
    """Render the 30-day, 7-day, today and live cost segments on one line."""
    segments = [
        period_segment("30DAY", lambda: scanner.calculate_period(MONTHLY_WINDOW)),
        period_segment("7DAY", lambda: scanner.calculate_period(WEEKLY_WINDOW)),
        period_segment("TODAY", scanner.calculate_today),
        reporter.report(status),
    ]
    return SEGMENT_SEPARATOR.join(segments)
