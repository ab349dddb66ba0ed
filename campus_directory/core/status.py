"""
Operator status reports built from telemetry summaries.
"""

from typing import Any, Dict

from .cache import CacheManager
from .migration import MigrationManager
from .table import ExternalTable
from .telemetry import INVALIDATION, MIGRATION, RUNTIME, Telemetry


def cache_status(cache: CacheManager, migration: MigrationManager, table: ExternalTable,
                 telemetry: Telemetry) -> Dict[str, Any]:
    try:
        table_exists = table.exists()
    except Exception:
        table_exists = False

    return {
        "cache_exists": cache.exists(),
        "migration_complete": migration.is_complete(),
        "recipients_sheet_exists": table_exists,
        "metadata": cache.metadata(),
        "recent_events": telemetry.entries(INVALIDATION),
    }


def runtime_report(telemetry: Telemetry, recent: int = 20) -> Dict[str, Any]:
    stats = telemetry.summary(RUNTIME)
    counters = stats.get("counters", {})
    hits = counters.get("cache_hit", 0)
    misses = counters.get("cache_miss", 0)
    lookups = hits + misses

    return {
        "stats": stats,
        "cache_hit_ratio": round(hits / lookups * 100, 1) if lookups else 0.0,
        "recent_logs": telemetry.entries(RUNTIME, limit=recent),
        "total_log_entries": len(telemetry.entries(RUNTIME)),
    }


def migration_report(migration: MigrationManager, telemetry: Telemetry, recent: int = 10) -> Dict[str, Any]:
    return {
        "is_complete": migration.is_complete(),
        "completed_at": migration.completed_at(),
        "summary": telemetry.summary(MIGRATION),
        "recent_logs": telemetry.entries(MIGRATION, limit=recent),
    }
