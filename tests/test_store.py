"""
Tests for the durable key-value store adapters.
"""

import sqlite3
import pytest
from unittest.mock import patch

from campus_directory.core.db import health_check, init_db
from campus_directory.core.store import InMemoryKeyValueStore, SQLiteKeyValueStore, StoreError


@pytest.fixture
def sqlite_store(tmp_path):
    return SQLiteKeyValueStore(str(tmp_path / "data" / "directory.db"))


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(str(tmp_path / "directory.db"))


class TestKeyValueStore:
    """Behaviour shared by every store implementation."""

    def test_get_missing_returns_none(self, any_store):
        assert any_store.get("missing") is None

    def test_set_and_get(self, any_store):
        any_store.set("CAMPUS_DATA_CACHE", '{"a": 1}')

        assert any_store.get("CAMPUS_DATA_CACHE") == '{"a": 1}'

    def test_set_overwrites(self, any_store):
        any_store.set("MIGRATION_COMPLETE", "false")
        any_store.set("MIGRATION_COMPLETE", "true")

        assert any_store.get("MIGRATION_COMPLETE") == "true"

    def test_delete_is_idempotent(self, any_store):
        any_store.set("key", "value")
        any_store.delete("key")
        any_store.delete("key")

        assert any_store.get("key") is None


class TestSQLiteStore:
    """SQLite specifics."""

    def test_creates_database_directory_and_table(self, sqlite_store):
        assert health_check(sqlite_store.db_path) is True

    def test_values_survive_new_instance(self, sqlite_store):
        sqlite_store.set("RUNTIME_LOGS", "[]")

        reopened = SQLiteKeyValueStore(sqlite_store.db_path)
        assert reopened.get("RUNTIME_LOGS") == "[]"

    def test_health_check_without_table(self, tmp_path):
        path = str(tmp_path / "empty.db")
        sqlite3.connect(path).close()

        assert health_check(path) is False
        init_db(path)
        assert health_check(path) is True

    def test_sqlite_errors_become_store_errors(self, sqlite_store):
        with patch("campus_directory.core.store.get_db", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(StoreError, match="locked"):
                sqlite_store.get("key")
            with pytest.raises(StoreError):
                sqlite_store.set("key", "value")
            with pytest.raises(StoreError):
                sqlite_store.delete("key")
