"""
Tests for detecting and rebuilding a missing or corrupted recipients sheet.
"""

import pytest
from unittest.mock import patch

from campus_directory.core.cache import CacheManager
from campus_directory.core.recovery import RecoveryFailure, RecoveryManager
from campus_directory.core.schema import Directory
from campus_directory.core.table import InMemoryTable, TableAccessError
from campus_directory.core.telemetry import RUNTIME

HEADER = ["Campus", "Recipient"]


@pytest.fixture
def cache(store, telemetry):
    return CacheManager(store, telemetry)


def make_recovery(table, cache, telemetry, seed):
    return RecoveryManager(table, cache, telemetry, seed)


class TestDetection:
    """Test when recovery is and is not triggered."""

    def test_healthy_sheet_needs_no_recovery(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients", [HEADER, ["bernal", "a@nisd.net"]])

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.success
        assert outcome.action == "no_recovery_needed"
        assert table.read_all() == [HEADER, ["bernal", "a@nisd.net"]]

    def test_partly_invalid_sheet_is_left_alone(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients", [HEADER, ["bernal", "a@nisd.net"], ["bernal", "broken"]])

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.action == "no_recovery_needed"

    @pytest.mark.parametrize("rows", [
        None,
        [HEADER],
        [HEADER, ["", ""]],
        [["Name", "Email"], ["bernal", "a@nisd.net"]],
        [HEADER, ["bernal", "broken"], ["", "nobody@nisd.net"]],
    ])
    def test_unusable_sheet_is_rebuilt(self, cache, telemetry, seed, rows):
        table = InMemoryTable("Recipients", rows)

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.success
        assert outcome.action == "recovered_from_seed"
        assert table.read_all()[0] == HEADER
        assert "recovery_needed" in [e["key"] for e in telemetry.entries(RUNTIME)]

    def test_read_failure_triggers_recovery(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients", [HEADER, ["bernal", "a@nisd.net"]])
        recovery = make_recovery(table, cache, telemetry, seed)

        with patch.object(table, "read_all", side_effect=[TableAccessError("timeout"), [HEADER]]):
            outcome = recovery.validate_and_recover()

        assert outcome.success
        assert outcome.details["reason"].startswith("Failed to read sheet")


class TestFallbackChain:
    """Test the ordered cache -> seed strategies."""

    def test_rebuilds_from_cache_not_seed(self, cache, telemetry, seed):
        cache.store(Directory.combine({"luna": ["leti.chapa@nisd.net"]}, {"luna": "folder-luna"}))
        table = InMemoryTable("Recipients")

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.action == "recovered_from_cache"
        assert outcome.details["data_source"] == "cache"
        assert table.read_all() == [HEADER, ["luna", "leti.chapa@nisd.net"]]
        assert table.note.startswith("Sheet recovered from cache data on ")

    def test_falls_back_to_seed(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients")

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.action == "recovered_from_seed"
        assert outcome.details["campus_count"] == 3
        assert outcome.details["total_recipients"] == 4
        assert [a.strategy for a in outcome.attempts] == ["cache", "seed"]
        assert outcome.attempts[0].succeeded is False
        assert outcome.attempts[0].reason == "No cached directory"
        assert table.note.startswith("Sheet recovered from seed data on ")
        assert len(table.read_all()) == 5

    def test_cache_with_no_recipients_is_skipped(self, cache, telemetry, seed):
        cache.store(Directory.combine({}, {"luna": "folder-luna"}))
        table = InMemoryTable("Recipients")

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.action == "recovered_from_seed"
        assert outcome.attempts[0].reason == "Cached directory has no recipients"

    def test_empty_cache_is_not_counted_as_another_miss(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients")

        outcome = make_recovery(table, cache, telemetry, seed).validate_and_recover()

        assert outcome.action == "recovered_from_seed"
        assert "cache_miss" not in telemetry.summary(RUNTIME)["counters"]
        assert "cache_miss" not in [e["key"] for e in telemetry.entries(RUNTIME)]

    def test_strategy_exception_is_recorded(self, cache, telemetry, seed):
        cache.store(Directory.combine({"bernal": ["a@nisd.net"]}, {}))
        table = InMemoryTable("Recipients")
        recovery = make_recovery(table, cache, telemetry, seed)

        with patch.object(cache, "get", side_effect=RuntimeError("boom")):
            outcome = recovery.validate_and_recover()

        assert outcome.action == "recovered_from_seed"
        assert outcome.attempts[0].reason == "RuntimeError: boom"

    def test_all_sources_empty_fails_loudly(self, cache, telemetry, empty_seed):
        table = InMemoryTable("Recipients")

        outcome = make_recovery(table, cache, telemetry, empty_seed).validate_and_recover()

        assert outcome.success is False
        assert outcome.action == "recovery_failed"
        assert [a.succeeded for a in outcome.attempts] == [False, False]
        assert outcome.details["failures"]["seed"] == "Seed data is empty"
        assert not table.exists()
        assert telemetry.summary(RUNTIME)["last_error"]["key"] == "recovery_failed"

        with pytest.raises(RecoveryFailure, match="Seed data is empty"):
            outcome.raise_for_failure()

    def test_sheet_write_failure_moves_to_next_source(self, cache, telemetry, empty_seed):
        cache.store(Directory.combine({"luna": ["leti.chapa@nisd.net"]}, {}))
        table = InMemoryTable("Recipients")
        recovery = make_recovery(table, cache, telemetry, empty_seed)

        with patch.object(table, "create", side_effect=TableAccessError("permission denied")):
            outcome = recovery.recover()

        assert outcome.action == "recovery_failed"
        assert "permission denied" in outcome.attempts[0].reason

    def test_forced_recovery_replaces_healthy_sheet(self, cache, telemetry, seed):
        table = InMemoryTable("Recipients", [HEADER, ["bernal", "a@nisd.net"]])

        outcome = make_recovery(table, cache, telemetry, seed).recover(force=True)

        assert outcome.success
        assert outcome.details["forced"] is True
        assert ["bernal", "a@nisd.net"] not in table.read_all()
        assert outcome.raise_for_failure() is outcome
