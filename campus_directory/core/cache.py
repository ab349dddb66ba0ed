"""
Cache manager - cache-first reads of the directory from the durable store.

The whole directory lives under one durable key as a versioned payload.
Anything that fails to decode is treated as corrupt and cleared, never merged.
"""

import json
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from util.logging import logger

from .config import CACHE_STALE_DAYS, DIRECTORY_KEY
from .schema import DecodeError, Directory, DirectoryPayload, decode_directory, summarize_errors
from .store import KeyValueStore
from .telemetry import RUNTIME, Telemetry


class DirectoryValidationError(Exception):
    """Raised by store() when a directory violates the schema."""
    pass


class CacheManager:
    """Reads, validates, writes and clears the cached directory."""

    def __init__(self, store: KeyValueStore, telemetry: Telemetry,
                 stale_days: int = CACHE_STALE_DAYS,
                 clock: Callable[[], datetime] = datetime.now):
        self.kv_store = store
        self.telemetry = telemetry
        self.stale_days = stale_days
        self.clock = clock
        self.last_corruption: Optional[DecodeError] = None

    def get(self) -> Optional[Directory]:
        """Return the cached directory, or None on a miss or after clearing corruption."""
        started = time.time()
        self.telemetry.record(RUNTIME, "cache_lookup", "debug", "Attempting cache lookup")

        try:
            raw = self.kv_store.get(DIRECTORY_KEY)
        except Exception as e:
            self.telemetry.record(RUNTIME, "cache_error", "error", f"Cache read failed: {e}")
            return None

        if raw is None:
            self.telemetry.increment(RUNTIME, "cache_miss")
            self.telemetry.record(RUNTIME, "cache_miss", "info", "No cached directory found",
                                  duration_ms=(time.time() - started) * 1000)
            return None

        result = decode_directory(raw)
        if not result.ok:
            self.last_corruption = result.error
            self.telemetry.record(
                RUNTIME, "cache_corruption", "warning",
                f"Cached directory discarded: {result.error.message}",
                {"kind": result.error.kind, "data_size": len(raw)},
            )
            logger.log_cache_event("corruption", "corrupt", {"kind": result.error.kind})
            self.clear()
            return None

        directory = result.directory
        self._check_freshness(directory)

        self.telemetry.increment(RUNTIME, "cache_hit")
        self.telemetry.record(
            RUNTIME, "cache_hit", "success", "Cache hit",
            {
                "campus_count": directory.campus_count,
                "last_updated": directory.last_updated.isoformat() if directory.last_updated else None,
                "data_size": len(raw),
            },
            duration_ms=(time.time() - started) * 1000,
        )
        return directory

    def store(self, directory: Directory) -> Directory:
        """
        Validate and persist a directory.

        Stamps last_updated with the current time and marks the payload as
        migrated. Raises DirectoryValidationError for malformed input.
        """
        started = time.time()
        now = self.clock()
        payload = directory.to_payload()
        payload["last_updated"] = now.isoformat()
        payload["migration_complete"] = True

        try:
            DirectoryPayload.model_validate(payload)
        except ValidationError as e:
            message = summarize_errors(e)
            self.telemetry.record(RUNTIME, "cache_store", "error", f"Refused to cache directory: {message}")
            raise DirectoryValidationError(message) from e

        raw = json.dumps(payload)
        self.kv_store.set(DIRECTORY_KEY, raw)

        stored = directory.model_copy(update={"last_updated": now, "migration_complete": True})
        self.telemetry.record(
            RUNTIME, "cache_store", "success", "Directory cached",
            {
                "campus_count": stored.campus_count,
                "total_recipients": stored.total_recipients,
                "data_size": len(raw),
            },
            duration_ms=(time.time() - started) * 1000,
        )
        return stored

    def clear(self) -> None:
        """Delete the cached directory. Safe when nothing is cached."""
        self.kv_store.delete(DIRECTORY_KEY)
        self.telemetry.record(RUNTIME, "cache_cleared", "info", "Cache cleared")
        logger.log_cache_event("cleared")

    def exists(self) -> bool:
        return self.kv_store.get(DIRECTORY_KEY) is not None

    def metadata(self) -> Optional[Dict[str, Any]]:
        """Summary of the cached directory without recording a lookup."""
        raw = self.kv_store.get(DIRECTORY_KEY)
        if raw is None:
            return None
        result = decode_directory(raw)
        if not result.ok:
            return None
        directory = result.directory
        return {
            "last_updated": directory.last_updated.isoformat() if directory.last_updated else None,
            "campus_count": directory.campus_count,
            "total_recipients": directory.total_recipients,
            "data_size": len(raw),
        }

    def _check_freshness(self, directory: Directory) -> None:
        if directory.last_updated is None:
            return
        age = self.clock() - directory.last_updated
        if age > timedelta(days=self.stale_days):
            self.telemetry.record(
                RUNTIME, "cache_stale", "warning",
                f"Cached directory is {age.days} days old",
                {"last_updated": directory.last_updated.isoformat(), "age_days": age.days},
            )
