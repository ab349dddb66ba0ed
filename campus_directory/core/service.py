"""
Composition root - wires every component to one store and one set of tables.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .cache import CacheManager
from .config import RECIPIENTS_SHEET_NAME, get_external_table, get_reference_table, get_store
from .invalidation import InvalidationHandler
from .lookup import LookupFacade
from .migration import MigrationManager
from .recovery import RecoveryManager
from .seed import DEFAULT_SEED, SeedData
from .status import cache_status, migration_report, runtime_report
from .store import KeyValueStore
from .table import ExternalTable, ReferenceTable
from .telemetry import Telemetry


@dataclass
class DirectoryService:
    store: KeyValueStore
    table: ExternalTable
    telemetry: Telemetry
    cache: CacheManager
    migration: MigrationManager
    recovery: RecoveryManager
    lookup: LookupFacade
    invalidation: InvalidationHandler

    def cache_status(self) -> Dict[str, Any]:
        return cache_status(self.cache, self.migration, self.table, self.telemetry)

    def runtime_report(self) -> Dict[str, Any]:
        return runtime_report(self.telemetry)

    def migration_report(self) -> Dict[str, Any]:
        return migration_report(self.migration, self.telemetry)


def build_service(store: KeyValueStore, table: ExternalTable,
                  reference_table: Optional[ReferenceTable] = None,
                  seed: SeedData = DEFAULT_SEED,
                  sheet_name: Optional[str] = None) -> DirectoryService:
    telemetry = Telemetry(store)
    cache = CacheManager(store, telemetry)
    migration = MigrationManager(store, telemetry, cache, table, reference_table, seed)
    recovery = RecoveryManager(table, cache, telemetry, seed)
    lookup = LookupFacade(telemetry, cache, migration, recovery, table, seed.campus_keys)
    invalidation = InvalidationHandler(cache, telemetry, sheet_name or table.name)
    return DirectoryService(store, table, telemetry, cache, migration, recovery, lookup, invalidation)


_service: Optional[DirectoryService] = None


def get_service() -> DirectoryService:
    """Process-wide service built from configuration."""
    global _service
    if _service is None:
        _service = build_service(
            store=get_store(),
            table=get_external_table(),
            reference_table=get_reference_table(),
            sheet_name=RECIPIENTS_SHEET_NAME,
        )
    return _service


def reset_service() -> None:
    global _service
    _service = None
