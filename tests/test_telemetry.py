"""
Tests for the telemetry log: bounded retention, summaries and failure isolation.
"""

import json
import pytest
from unittest.mock import MagicMock, patch

from campus_directory.core.store import InMemoryKeyValueStore, KeyValueStore, StoreError
from campus_directory.core.telemetry import (
    INVALIDATION,
    MIGRATION,
    RUNTIME,
    Telemetry,
    TelemetryDomain,
)

SMALL = TelemetryDomain("small", "SMALL_LOGS", "SMALL_SUMMARY", 3)


@pytest.fixture
def telemetry():
    return Telemetry(InMemoryKeyValueStore(), sample_cap=2)


class TestTelemetryLog:
    """Test the bounded, newest-first logs."""

    def test_entries_are_newest_first(self, telemetry):
        telemetry.record(SMALL, "first", "info", "one")
        telemetry.record(SMALL, "second", "info", "two")

        entries = telemetry.entries(SMALL)
        assert [e["key"] for e in entries] == ["second", "first"]
        assert entries[0]["message"] == "two"
        assert "timestamp" in entries[0]

    def test_log_is_truncated_to_cap(self, telemetry):
        for i in range(5):
            telemetry.record(SMALL, f"op{i}", "info", str(i))

        entries = telemetry.entries(SMALL)
        assert len(entries) == 3
        assert [e["key"] for e in entries] == ["op4", "op3", "op2"]

    def test_domain_caps(self):
        assert MIGRATION.cap == 50
        assert RUNTIME.cap == 100
        assert INVALIDATION.cap == 10

    def test_domains_are_independent(self, telemetry):
        telemetry.record(MIGRATION, "migration_start", "info", "start")
        telemetry.record(RUNTIME, "cache_miss", "info", "miss")

        assert [e["key"] for e in telemetry.entries(MIGRATION)] == ["migration_start"]
        assert [e["key"] for e in telemetry.entries(RUNTIME)] == ["cache_miss"]

    def test_entries_limit(self, telemetry):
        for i in range(3):
            telemetry.record(RUNTIME, f"op{i}", "info", "")

        assert len(telemetry.entries(RUNTIME, limit=2)) == 2

    def test_unknown_level_becomes_info(self, telemetry):
        telemetry.record(SMALL, "op", "loud", "x")

        assert telemetry.entries(SMALL)[0]["level"] == "info"

    def test_log_persists_immediately(self):
        store = InMemoryKeyValueStore()
        Telemetry(store).record(RUNTIME, "cache_hit", "success", "hit")

        assert json.loads(store.get(RUNTIME.log_key))[0]["key"] == "cache_hit"


class TestTelemetrySummary:
    """Test aggregated counters, last error and duration statistics."""

    def test_counts_by_level_and_key(self, telemetry):
        telemetry.record(SMALL, "lookup", "info", "")
        telemetry.record(SMALL, "lookup", "warning", "")
        telemetry.record(SMALL, "store", "success", "")

        summary = telemetry.summary(SMALL)
        assert summary["total_events"] == 3
        assert summary["counts_by_key"] == {"lookup": 2, "store": 1}
        assert summary["counts_by_level"] == {"info": 1, "warning": 1, "success": 1}
        assert "store" in summary["steps_completed"]

    def test_last_error_and_error_patterns(self, telemetry):
        long_message = "Sheet read failed because the quota was exhausted for this project today"
        telemetry.record(SMALL, "sheet_read", "error", long_message, {"attempt": 1})
        telemetry.record(SMALL, "refresh", "error", long_message)

        summary = telemetry.summary(SMALL)
        assert summary["last_error"]["key"] == "refresh"
        pattern = summary["error_patterns"][long_message[:50]]
        assert pattern["count"] == 2
        assert pattern["operations"] == ["sheet_read", "refresh"]

    def test_duration_statistics(self, telemetry):
        telemetry.record(SMALL, "lookup", "info", "", duration_ms=10)
        telemetry.record(SMALL, "lookup", "info", "", duration_ms=30)
        telemetry.record(SMALL, "lookup", "info", "", duration_ms=20)

        stats = telemetry.summary(SMALL)["performance"]["lookup"]
        assert stats["count"] == 3
        assert stats["total"] == 60
        assert stats["min"] == 10
        assert stats["max"] == 30
        assert stats["average"] == 20
        assert [s["duration"] for s in stats["samples"]] == [20, 30]

    def test_counters_and_fields(self, telemetry):
        telemetry.increment(MIGRATION, "total_attempts")
        telemetry.increment(MIGRATION, "total_attempts")
        telemetry.set_fields(MIGRATION, last_attempt="2025-01-01T00:00:00")

        summary = telemetry.summary(MIGRATION)
        assert summary["counters"]["total_attempts"] == 2
        assert summary["last_attempt"] == "2025-01-01T00:00:00"

    def test_summary_created_lazily(self, telemetry):
        summary = telemetry.summary(RUNTIME)

        assert summary["total_events"] == 0
        assert summary["last_error"] is None

    def test_invalidation_domain_has_no_summary(self, telemetry):
        for i in range(12):
            telemetry.record(INVALIDATION, "cache_invalidated", "info", str(i))

        assert len(telemetry.entries(INVALIDATION)) == 10
        assert telemetry.summary(INVALIDATION)["total_events"] == 0

    def test_unreadable_summary_is_replaced(self):
        store = InMemoryKeyValueStore({RUNTIME.summary_key: "{broken"})
        telemetry = Telemetry(store)

        telemetry.record(RUNTIME, "cache_hit", "success", "")

        assert telemetry.summary(RUNTIME)["total_events"] == 1


class TestTelemetryFailures:
    """Telemetry must never raise to its caller."""

    def test_persist_failure_is_swallowed_and_logged(self):
        store = MagicMock(spec=KeyValueStore)
        store.get.return_value = None
        store.set.side_effect = StoreError("disk full")
        telemetry = Telemetry(store)

        with patch("campus_directory.core.telemetry.logger") as mock_logger:
            telemetry.record(RUNTIME, "cache_hit", "success", "hit")
            telemetry.increment(RUNTIME, "cache_hit")

        assert mock_logger.error.call_count == 2
        assert "disk full" in mock_logger.error.call_args_list[0][0][0]

    def test_read_failure_returns_no_entries(self):
        store = MagicMock(spec=KeyValueStore)
        store.get.side_effect = StoreError("locked")

        with patch("campus_directory.core.telemetry.logger"):
            assert Telemetry(store).entries(RUNTIME) == []

    def test_records_are_echoed_to_console_channel(self, telemetry):
        with patch("campus_directory.core.telemetry.logger") as mock_logger:
            telemetry.record(RUNTIME, "cache_miss", "warning", "nothing cached")

        mock_logger.log_telemetry_event.assert_called_once_with(
            "runtime", "cache_miss", "warning", "nothing cached"
        )
