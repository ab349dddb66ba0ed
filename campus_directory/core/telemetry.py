"""
Telemetry log - bounded, newest-first event logs with aggregated summaries.

Three independent domains share the same mechanics: migration events,
runtime operations and cache invalidations. Every record is written through
the durable store immediately. Telemetry never raises to its caller.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from util.logging import logger

from .config import (
    INVALIDATION_LOG_CAP,
    INVALIDATION_LOG_KEY,
    MIGRATION_LOG_CAP,
    MIGRATION_LOG_KEY,
    MIGRATION_SUMMARY_KEY,
    PERFORMANCE_SAMPLE_CAP,
    RUNTIME_LOG_CAP,
    RUNTIME_LOG_KEY,
    RUNTIME_SUMMARY_KEY,
)
from .store import KeyValueStore

LEVELS = ("debug", "info", "success", "warning", "error")
ERROR_PATTERN_LENGTH = 50


@dataclass(frozen=True)
class TelemetryDomain:
    name: str
    log_key: str
    summary_key: Optional[str]
    cap: int


MIGRATION = TelemetryDomain("migration", MIGRATION_LOG_KEY, MIGRATION_SUMMARY_KEY, MIGRATION_LOG_CAP)
RUNTIME = TelemetryDomain("runtime", RUNTIME_LOG_KEY, RUNTIME_SUMMARY_KEY, RUNTIME_LOG_CAP)
INVALIDATION = TelemetryDomain("invalidation", INVALIDATION_LOG_KEY, None, INVALIDATION_LOG_CAP)


def _now() -> str:
    return datetime.now().isoformat()


def empty_summary() -> Dict[str, Any]:
    return {
        "total_events": 0,
        "counts_by_level": {},
        "counts_by_key": {},
        "counters": {},
        "last_activity": None,
        "last_error": None,
        "steps_completed": {},
        "performance": {},
        "error_patterns": {},
    }


class Telemetry:
    """Records structured events per domain through a durable store."""

    def __init__(self, store: KeyValueStore, sample_cap: int = PERFORMANCE_SAMPLE_CAP):
        self.store = store
        self.sample_cap = sample_cap

    def record(self, domain: TelemetryDomain, key: str, level: str = "info", message: str = "",
               data: Optional[Dict[str, Any]] = None, duration_ms: Optional[float] = None) -> None:
        """
        Prepend an entry to the domain log and fold it into the summary.

        A failure to persist is reported on the console channel and swallowed.
        """
        if level not in LEVELS:
            level = "info"
        data = dict(data or {})
        if duration_ms is not None:
            data.setdefault("duration_ms", round(duration_ms, 2))

        entry = {
            "timestamp": _now(),
            "key": key,
            "level": level,
            "message": message,
            "data": data,
        }

        logger.log_telemetry_event(domain.name, key, level, message)

        try:
            entries = self._load_list(domain.log_key)
            entries.insert(0, entry)
            del entries[domain.cap:]
            self.store.set(domain.log_key, json.dumps(entries, default=str))

            if domain.summary_key:
                summary = self.summary(domain)
                self._fold(summary, entry, data.get("duration_ms"))
                self.store.set(domain.summary_key, json.dumps(summary, default=str))
        except Exception as e:
            logger.error(f"Failed to persist {domain.name} telemetry for '{key}': {e}")

    def increment(self, domain: TelemetryDomain, counter: str, amount: int = 1) -> None:
        """Bump a named counter in the domain summary."""
        def bump(summary):
            summary["counters"][counter] = summary["counters"].get(counter, 0) + amount

        self._update_summary(domain, bump)

    def set_fields(self, domain: TelemetryDomain, **fields: Any) -> None:
        """Set top-level summary fields such as last_attempt or last_success."""
        self._update_summary(domain, lambda s: s.update(fields))

    def entries(self, domain: TelemetryDomain, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest-first log entries for a domain."""
        try:
            entries = self._load_list(domain.log_key)
        except Exception as e:
            logger.error(f"Failed to read {domain.name} telemetry log: {e}")
            return []
        return entries[:limit] if limit is not None else entries

    def summary(self, domain: TelemetryDomain) -> Dict[str, Any]:
        """Aggregated summary for a domain, created lazily."""
        if not domain.summary_key:
            return empty_summary()
        raw = self.store.get(domain.summary_key)
        summary = empty_summary()
        if raw:
            try:
                loaded = json.loads(raw)
            except ValueError:
                logger.warning(f"Discarding unreadable {domain.name} telemetry summary")
                loaded = {}
            if isinstance(loaded, dict):
                summary.update(loaded)
        return summary

    def _update_summary(self, domain: TelemetryDomain, mutate) -> None:
        if not domain.summary_key:
            return
        try:
            summary = self.summary(domain)
            mutate(summary)
            self.store.set(domain.summary_key, json.dumps(summary, default=str))
        except Exception as e:
            logger.error(f"Failed to update {domain.name} telemetry summary: {e}")

    def _load_list(self, key: str) -> List[Dict[str, Any]]:
        raw = self.store.get(key)
        if not raw:
            return []
        try:
            loaded = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding unreadable telemetry log '{key}'")
            return []
        return loaded if isinstance(loaded, list) else []

    def _fold(self, summary: Dict[str, Any], entry: Dict[str, Any], duration_ms: Optional[float]) -> None:
        key = entry["key"]
        level = entry["level"]
        timestamp = entry["timestamp"]

        summary["total_events"] += 1
        summary["counts_by_level"][level] = summary["counts_by_level"].get(level, 0) + 1
        summary["counts_by_key"][key] = summary["counts_by_key"].get(key, 0) + 1
        summary["last_activity"] = timestamp

        if level == "success":
            summary["steps_completed"][key] = timestamp

        if level == "error":
            summary["last_error"] = {
                "timestamp": timestamp,
                "key": key,
                "message": entry["message"],
                "data": entry["data"],
            }
            pattern = (entry["message"] or key)[:ERROR_PATTERN_LENGTH]
            tracked = summary["error_patterns"].setdefault(
                pattern, {"count": 0, "last_occurrence": None, "operations": []})
            tracked["count"] += 1
            tracked["last_occurrence"] = timestamp
            if key not in tracked["operations"]:
                tracked["operations"].append(key)

        if duration_ms is not None:
            self._fold_duration(summary["performance"], key, float(duration_ms), timestamp)

    def _fold_duration(self, performance: Dict[str, Any], key: str, duration: float, timestamp: str) -> None:
        stats = performance.get(key)
        if stats is None:
            stats = {"count": 0, "total": 0.0, "min": duration, "max": duration,
                     "average": 0.0, "samples": []}
            performance[key] = stats

        stats["count"] += 1
        stats["total"] += duration
        stats["min"] = min(stats["min"], duration)
        stats["max"] = max(stats["max"], duration)
        stats["average"] = stats["total"] / stats["count"]
        stats["samples"].insert(0, {"duration": duration, "timestamp": timestamp})
        del stats["samples"][self.sample_cap:]
