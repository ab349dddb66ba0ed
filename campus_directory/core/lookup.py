"""
Lookup facade - the single entry point used to resolve a campus key to its
recipients and folder reference.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .cache import CacheManager
from .migration import MigrationManager
from .recovery import RecoveryManager
from .schema import Directory
from .table import ExternalTable, read_recipients
from .telemetry import INVALIDATION, RUNTIME, Telemetry
from .validator import suggest_campus_names


@dataclass
class CampusInfo:
    recipients: List[str] = field(default_factory=list)
    folder_reference: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"recipients": list(self.recipients), "folder_reference": self.folder_reference}


class LookupFacade:
    """Resolves a campus to its recipients and folder reference, never raising."""

    def __init__(self, telemetry: Telemetry, cache: CacheManager, migration: MigrationManager,
                 recovery: RecoveryManager, table: ExternalTable, expected_keys: Sequence[str]):
        self.telemetry = telemetry
        self.cache = cache
        self.migration = migration
        self.recovery = recovery
        self.table = table
        self.expected_keys = list(expected_keys)

    def resolve(self, campus_key_raw: Any) -> CampusInfo:
        """
        Resolve a campus key. Never raises.

        Invalid input, unknown campuses and internal failures all return an
        empty CampusInfo; they differ only in the telemetry they record.
        """
        started = time.time()
        if not isinstance(campus_key_raw, str) or not campus_key_raw.strip():
            self.telemetry.record(RUNTIME, "invalid_campus_param", "warning",
                                  f"Invalid campus parameter: {campus_key_raw!r}")
            return CampusInfo()

        campus_key = campus_key_raw.strip().lower()
        try:
            directory = self.load_directory()
            record = directory.get(campus_key)

            if record is None:
                suggestions = suggest_campus_names(campus_key, directory.campuses.keys())
                self.telemetry.record(RUNTIME, "campus_not_found", "warning",
                                      f'Campus "{campus_key}" not found',
                                      {"campus": campus_key, "suggestions": suggestions,
                                       "available": directory.campus_count})
                return CampusInfo()

            if not record.recipients:
                self.telemetry.record(RUNTIME, "no_recipients_found", "warning",
                                      f'Campus "{campus_key}" has no recipients',
                                      {"campus": campus_key})

            self.telemetry.record(RUNTIME, "campus_lookup_success", "success",
                                  f'Resolved campus "{campus_key}"',
                                  {"campus": campus_key, "recipient_count": len(record.recipients),
                                   "has_folder": bool(record.folder_reference)},
                                  duration_ms=(time.time() - started) * 1000)
            return CampusInfo(list(record.recipients), record.folder_reference)

        except Exception as e:
            self.telemetry.record(RUNTIME, "campus_lookup_error", "error",
                                  f'Lookup for "{campus_key}" failed: {e}',
                                  {"campus": campus_key, "error_type": type(e).__name__},
                                  duration_ms=(time.time() - started) * 1000)
            return CampusInfo()

    def load_directory(self) -> Directory:
        """Cache-first directory load, migrating and recovering as needed."""
        if not self.migration.is_complete():
            self.telemetry.record(RUNTIME, "migration_trigger", "info", "Migration incomplete, running it")
            self.migration.perform()

        directory = self.cache.get()
        if directory is not None:
            return directory

        self.recovery.validate_and_recover()
        return self.rebuild_from_table("cache_refreshed")

    def rebuild_from_table(self, event_key: str = "cache_refreshed") -> Directory:
        """
        Read the recipients table, reconcile it with folder references and cache it.

        A directory with no recipients at all is served but not cached.
        """
        started = time.time()
        recipients = read_recipients(self.table, self.expected_keys, self.telemetry)
        folder_references = self.migration.load_folder_references()
        directory = Directory.combine(recipients.data, folder_references)

        if directory.is_empty():
            self.telemetry.record(RUNTIME, "cache_store_skipped", "warning",
                                  "Rebuilt directory has no recipients, not caching it",
                                  {"campus_count": directory.campus_count})
            return directory

        stored = self.cache.store(directory)
        self.telemetry.record(RUNTIME, event_key, "success", "Directory rebuilt from sheet",
                              {"campus_count": stored.campus_count,
                               "total_recipients": stored.total_recipients,
                               "invalid_rows": len(recipients.validation.invalid)},
                              duration_ms=(time.time() - started) * 1000)
        return stored

    def refresh_cache(self) -> Directory:
        """Operator refresh: clear, rebuild from the sheet and log an invalidation event."""
        started = time.time()
        self.cache.clear()
        directory = self.rebuild_from_table("manual_refresh")
        self.telemetry.record(INVALIDATION, "manual_refresh", "info", "Cache manually refreshed",
                              {"sheet_name": self.table.name,
                               "reason": "manual_refresh",
                               "campus_count": directory.campus_count,
                               "total_recipients": directory.total_recipients},
                              duration_ms=(time.time() - started) * 1000)
        return directory
