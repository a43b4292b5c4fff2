"""
Unit tests for status line cost segments.
"""

import json
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from statusline_cost.core.reporting import (
    LiveCostReporter,
    StatusInput,
    format_amount,
    parse_status_input,
    period_segment,
    render_cost_line,
)
from statusline_cost.core.scanner import TranscriptScanner
from statusline_cost.storage.cache import TTLCache
from statusline_cost.storage.errors import StorageError
from statusline_cost.storage.ledger import CostLedger


class TestParseStatusInput:
    """Test extraction of the host payload fields."""
    
    def test_valid_payload(self):
        """Verify session id and cost are read."""
        payload = json.dumps({
            "session_id": "abc-123",
            "model": {"id": "claude-opus-4-5-20251101"},
            "cost": {"total_cost_usd": 1.23, "total_duration_ms": 5000},
        })
        assert parse_status_input(payload) == StatusInput(session_id="abc-123", total_cost_usd=1.23)
    
    def test_integer_cost(self):
        """Verify integral costs are accepted."""
        status = parse_status_input('{"session_id": "a", "cost": {"total_cost_usd": 2}}')
        assert status.total_cost_usd == 2.0
    
    @pytest.mark.parametrize("payload", ["", "not json", "[]", "{}"])
    def test_unusable_payloads_default(self, payload):
        """Verify malformed or empty payloads yield defaults."""
        assert parse_status_input(payload) == StatusInput()
    
    def test_wrong_field_types_default(self):
        """Verify wrongly typed fields fall back individually."""
        status = parse_status_input('{"session_id": 42, "cost": {"total_cost_usd": "1.0"}}')
        assert status == StatusInput()
        
        status = parse_status_input('{"session_id": "a", "cost": 1.0}')
        assert status == StatusInput(session_id="a")


class TestLiveCostReporter:
    """Test live cost display and ledger recording."""
    
    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.ledger = CostLedger(Path(self.temp_dir) / "ledger.jsonl")
        self.reporter = LiveCostReporter(self.ledger)
    
    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)
    
    def test_records_positive_cost(self):
        """Verify a snapshot is appended and the amount displayed."""
        output = self.reporter.report(StatusInput(session_id="s1", total_cost_usd=1.234))
        
        assert output == "LIVE $1.23"
        entries = self.ledger.read_entries()
        assert len(entries) == 1
        assert entries[0].session_id == "s1"
        assert entries[0].cost == 1.234
    
    def test_repeated_reports_count_latest_only(self):
        """Verify growing snapshots total to the latest one."""
        for cost in (0.5, 1.0, 2.5):
            self.reporter.report(StatusInput(session_id="s1", total_cost_usd=cost))
        
        assert self.ledger.calculate_period(timedelta(hours=1)) == pytest.approx(2.5)
    
    def test_missing_session_is_not_recorded(self):
        """Verify anonymous costs are displayed but not recorded."""
        output = self.reporter.report(StatusInput(session_id="", total_cost_usd=3.0))
        
        assert output == "LIVE $3.00"
        assert not self.ledger.path.exists()
    
    def test_zero_cost_is_not_recorded(self):
        """Verify zero costs are not recorded."""
        output = self.reporter.report(StatusInput(session_id="s1", total_cost_usd=0.0))
        
        assert output == "LIVE $0.00"
        assert not self.ledger.path.exists()
    
    def test_ledger_failure_still_displays(self):
        """Verify a failed append does not break the segment."""
        ledger = MagicMock(spec=CostLedger)
        ledger.append.side_effect = StorageError("disk full")
        
        output = LiveCostReporter(ledger).report(StatusInput(session_id="s1", total_cost_usd=1.0))
        
        assert output == "LIVE $1.00"
        ledger.append.assert_called_once()


class TestSegments:
    """Test segment formatting and the combined line."""
    
    def test_format_amount(self):
        """Verify two-decimal formatting."""
        assert format_amount("7DAY", 1.234) == "7DAY $1.23"
        assert format_amount("TODAY", 0) == "TODAY $0.00"
    
    def test_period_segment_failure_renders_zero(self):
        """Verify a failing computation renders zero."""
        def boom():
            raise StorageError("unreadable")
        
        assert period_segment("30DAY", boom) == "30DAY $0.00"
    
    def test_render_cost_line_order(self):
        """Verify segments appear in window order."""
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            projects = root / "projects"
            projects.mkdir()
            (projects / "s.jsonl").write_text(json.dumps({
                "type": "assistant",
                "timestamp": datetime.now().astimezone().isoformat(),
                "message": {
                    "model": "claude-opus-4-5-20251101",
                    "usage": {"input_tokens": 100000, "output_tokens": 20000},
                },
            }) + "\n", encoding="utf-8")
            scanner = TranscriptScanner(projects, TTLCache(root / "cache"))
            reporter = LiveCostReporter(CostLedger(root / "ledger.jsonl"))
            
            line = render_cost_line(scanner, reporter, StatusInput("s1", 0.42))
            
            assert line == "30DAY $1.00 | 7DAY $1.00 | TODAY $1.00 | LIVE $0.42"
    
    def test_render_cost_line_with_failing_scanner(self):
        """Verify scanner failures degrade to zero segments."""
        with tempfile.TemporaryDirectory() as temp_dir:
            scanner = MagicMock(spec=TranscriptScanner)
            scanner.calculate_period.side_effect = StorageError("boom")
            scanner.calculate_today.side_effect = StorageError("boom")
            reporter = LiveCostReporter(CostLedger(Path(temp_dir) / "ledger.jsonl"))
            
            line = render_cost_line(scanner, reporter, StatusInput())
            
            assert line == "30DAY $0.00 | 7DAY $0.00 | TODAY $0.00 | LIVE $0.00"
