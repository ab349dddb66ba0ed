"""
Tests for the cache manager: cache-first reads, corruption self-heal and store validation.
"""

import json
import pytest
from unittest.mock import MagicMock
from datetime import datetime, timedelta

from campus_directory.core.cache import CacheManager, DirectoryValidationError
from campus_directory.core.config import DIRECTORY_KEY
from campus_directory.core.schema import CampusRecord, Directory
from campus_directory.core.store import KeyValueStore, StoreError
from campus_directory.core.telemetry import RUNTIME


def make_directory():
    return Directory.combine(
        {"bernal": ["david.laboy@nisd.net", "sally.maher@nisd.net"], "luna": ["leti.chapa@nisd.net"]},
        {"bernal": "folder-bernal", "connally": "folder-connally"},
    )


@pytest.fixture
def cache(store, telemetry):
    return CacheManager(store, telemetry)


def runtime_keys(telemetry):
    return [e["key"] for e in telemetry.entries(RUNTIME)]


class TestCacheReads:
    """Test get() on hits, misses and corrupt payloads."""

    def test_miss_returns_none(self, cache, telemetry):
        assert cache.get() is None
        assert "cache_miss" in runtime_keys(telemetry)
        assert telemetry.summary(RUNTIME)["counters"]["cache_miss"] == 1

    def test_round_trip(self, cache, telemetry):
        directory = make_directory()

        stored = cache.store(directory)
        loaded = cache.get()

        assert loaded.campuses == directory.campuses
        assert loaded.migration_complete is True
        assert loaded.last_updated == stored.last_updated
        assert telemetry.summary(RUNTIME)["counters"]["cache_hit"] == 1

    def test_folder_only_campus_survives_round_trip(self, cache):
        cache.store(make_directory())

        record = cache.get().get("connally")
        assert record.recipients == []
        assert record.folder_reference == "folder-connally"

    @pytest.mark.parametrize("raw,kind", [
        ("not json{", "parse_error"),
        ("[1, 2, 3]", "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {"bernal": {"recipients": "a@nisd.net",
                                                                      "folder_reference": ""}},
                     "last_updated": None, "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {"bernal": {"recipients": []}},
                     "last_updated": None, "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {"bernal": {"recipients": [],
                                                                      "folder_reference": 42}},
                     "last_updated": None, "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {"bernal": {"recipients": ["bad-email"],
                                                                      "folder_reference": ""}},
                     "last_updated": None, "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"campus_data": {}, "last_updated": None, "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {"bernal": {"recipients": ["a@nisd.net"],
                                                                      "folder_reference": ""}},
                     "last_updated": "2024-01-01T00:00:00+00:00", "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 1, "campus_data": {}, "last_updated": "yesterday",
                     "migration_complete": True}), "shape_mismatch"),
        (json.dumps({"schema_version": 2, "campus_data": {}, "last_updated": None,
                     "migration_complete": True}), "version_mismatch"),
    ])
    def test_corruption_clears_key(self, cache, store, telemetry, raw, kind):
        store.set(DIRECTORY_KEY, raw)

        assert cache.get() is None
        assert store.get(DIRECTORY_KEY) is None
        assert cache.last_corruption.kind == kind
        assert "cache_corruption" in runtime_keys(telemetry)

    def test_store_read_failure_is_a_miss(self, telemetry):
        failing = MagicMock(spec=KeyValueStore)
        failing.get.side_effect = StoreError("io")
        cache = CacheManager(failing, telemetry)

        assert cache.get() is None
        assert "cache_error" in runtime_keys(telemetry)

    def test_stale_cache_warns_but_serves(self, store, telemetry):
        written_at = datetime(2025, 1, 1, 8, 0, 0)
        CacheManager(store, telemetry, clock=lambda: written_at).store(make_directory())

        later = CacheManager(store, telemetry, stale_days=30, clock=lambda: written_at + timedelta(days=31))
        directory = later.get()

        assert directory is not None
        stale = [e for e in telemetry.entries(RUNTIME) if e["key"] == "cache_stale"]
        assert stale and stale[0]["level"] == "warning"
        assert stale[0]["data"]["age_days"] == 31


class TestCacheWrites:
    """Test store(), clear() and metadata()."""

    def test_store_stamps_fields(self, cache, store):
        cache.store(make_directory())

        payload = json.loads(store.get(DIRECTORY_KEY))
        assert payload["schema_version"] == 1
        assert payload["migration_complete"] is True
        assert payload["last_updated"] is not None

    def test_store_rejects_malformed_directory(self, cache, store):
        bad = Directory.model_construct(
            campuses={"bernal": CampusRecord.model_construct(recipients=["bad-email"], folder_reference="")},
            last_updated=None,
            migration_complete=False,
        )

        with pytest.raises(DirectoryValidationError, match="invalid recipient"):
            cache.store(bad)
        assert store.get(DIRECTORY_KEY) is None

    def test_store_rejects_unnormalized_key(self, cache):
        bad = Directory.model_construct(
            campuses={" Bernal": CampusRecord(recipients=[], folder_reference="")},
            last_updated=None,
            migration_complete=False,
        )

        with pytest.raises(DirectoryValidationError):
            cache.store(bad)

    def test_clear_is_idempotent(self, cache, store):
        cache.store(make_directory())
        cache.clear()
        cache.clear()

        assert store.get(DIRECTORY_KEY) is None
        assert cache.exists() is False

    def test_metadata(self, cache):
        assert cache.metadata() is None

        cache.store(make_directory())
        metadata = cache.metadata()

        assert metadata["campus_count"] == 3
        assert metadata["total_recipients"] == 3
        assert metadata["data_size"] > 0
        assert metadata["last_updated"] is not None
