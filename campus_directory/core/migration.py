"""
Migration manager - one-time move from embedded seed data to the durable
store plus the mirrored recipients table.

NotStarted -> Extracting -> Combining -> Storing -> CreatingMirror -> Complete,
with Failed on any step's exception. The durable completion flag is the only
signal consulted; a failed run leaves it false so the next trigger retries.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from util.logging import logger

from .cache import CacheManager
from .config import MIGRATION_FLAG_KEY, MIGRATION_TIMESTAMP_KEY
from .schema import Directory
from .seed import DEFAULT_SEED, SeedData
from .store import KeyValueStore
from .table import ExternalTable, ReferenceTable
from .telemetry import MIGRATION, Telemetry


class MigrationState(Enum):
    NOT_STARTED = "not_started"
    EXTRACTING = "extracting"
    COMBINING = "combining"
    STORING = "storing"
    CREATING_MIRROR = "creating_mirror"
    COMPLETE = "complete"
    FAILED = "failed"


class MigrationFailure(Exception):
    """A migration step raised. The completion flag stays false."""

    def __init__(self, step: str, message: str):
        super().__init__(f"Migration failed at {step}: {message}")
        self.step = step


@dataclass
class MigrationRun:
    state: MigrationState
    performed: bool
    duration_ms: float = 0.0
    step_durations: Dict[str, float] = field(default_factory=dict)
    campus_count: int = 0
    total_recipients: int = 0
    mirror_created: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "performed": self.performed,
            "duration_ms": round(self.duration_ms, 2),
            "step_durations": self.step_durations,
            "campus_count": self.campus_count,
            "total_recipients": self.total_recipients,
            "mirror_created": self.mirror_created,
        }


def normalize_folder_references(references) -> Dict[str, str]:
    """Trim and lowercase campus keys, dropping blank or non-string keys. The first spelling of a key wins."""
    normalized: Dict[str, str] = {}
    for campus, folder_id in (references or {}).items():
        if not isinstance(campus, str) or not campus.strip():
            continue
        key = campus.strip().lower()
        if key not in normalized:
            normalized[key] = "" if folder_id is None else str(folder_id).strip()
    return normalized


class MigrationManager:
    """Runs the one-time migration from seed data into the cache and the recipients table."""

    def __init__(self, store: KeyValueStore, telemetry: Telemetry, cache: CacheManager,
                 table: ExternalTable, reference_table: Optional[ReferenceTable] = None,
                 seed: SeedData = DEFAULT_SEED,
                 clock: Callable[[], datetime] = datetime.now):
        self.kv_store = store
        self.telemetry = telemetry
        self.cache = cache
        self.table = table
        self.reference_table = reference_table
        self.seed = seed
        self.clock = clock
        self.state = MigrationState.NOT_STARTED
        self._running = False

    def is_complete(self) -> bool:
        return self.kv_store.get(MIGRATION_FLAG_KEY) == "true"

    def completed_at(self) -> Optional[str]:
        return self.kv_store.get(MIGRATION_TIMESTAMP_KEY)

    def mark_complete(self) -> None:
        self.kv_store.set(MIGRATION_FLAG_KEY, "true")
        self.kv_store.set(MIGRATION_TIMESTAMP_KEY, self.clock().isoformat())

    def reset(self) -> None:
        """Operator-only: clear the completion flag and the cache so the next lookup migrates again."""
        self.kv_store.delete(MIGRATION_FLAG_KEY)
        self.kv_store.delete(MIGRATION_TIMESTAMP_KEY)
        self.cache.clear()
        self.state = MigrationState.NOT_STARTED
        self.telemetry.record(MIGRATION, "migration_reset", "warning",
                              "Migration flag cleared by operator")

    def load_folder_references(self) -> Dict[str, str]:
        """Folder ids from the reference table, or the seed table when it is absent or failing."""
        started = time.time()
        if self.reference_table is None:
            self.telemetry.record(MIGRATION, "read_drive_data", "warning",
                                  "No reference table configured, using seed folder references")
            return dict(self.seed.folder_references)

        try:
            references = normalize_folder_references(self.reference_table.read_folder_references())
        except Exception as e:
            self.telemetry.record(MIGRATION, "read_drive_data", "warning",
                                  f"Reference table unavailable, using seed folder references: {e}")
            return dict(self.seed.folder_references)

        if not references:
            self.telemetry.record(MIGRATION, "read_drive_data", "warning",
                                  "Reference table is empty, using seed folder references")
            return dict(self.seed.folder_references)

        self.telemetry.record(MIGRATION, "read_drive_data", "success",
                              f"Loaded {len(references)} folder references",
                              {"campus_count": len(references)},
                              duration_ms=(time.time() - started) * 1000)
        return references

    def perform(self) -> MigrationRun:
        """Run the migration once. A no-op when the completion flag is already set."""
        if self.is_complete():
            self.telemetry.record(MIGRATION, "migration_check", "info", "Migration already completed")
            self.state = MigrationState.COMPLETE
            return MigrationRun(state=MigrationState.COMPLETE, performed=False)

        if self._running:
            self.telemetry.record(MIGRATION, "migration_check", "warning", "Migration already in progress")
            return MigrationRun(state=self.state, performed=False)

        self._running = True
        started = time.time()
        run = MigrationRun(state=MigrationState.NOT_STARTED, performed=True)

        self.telemetry.record(MIGRATION, "migration_start", "info", "Starting migration",
                              {"seed_version": self.seed.version})
        self.telemetry.increment(MIGRATION, "total_attempts")
        self.telemetry.set_fields(MIGRATION, last_attempt=self.clock().isoformat())

        step = "extract_hardcoded"
        try:
            self._enter(MigrationState.EXTRACTING, run)
            step_started = time.time()
            recipients = {campus: list(emails) for campus, emails in self.seed.recipients.items()}
            self._step_done(run, step, step_started, f"Extracted {len(recipients)} seed campuses",
                            {"campus_count": len(recipients)})

            step = "read_drive_data"
            folder_references = self.load_folder_references()

            step = "combine_data"
            self._enter(MigrationState.COMBINING, run)
            step_started = time.time()
            directory = Directory.combine(recipients, folder_references)
            self._step_done(run, step, step_started, f"Combined {directory.campus_count} campuses",
                            {"campus_count": directory.campus_count,
                             "total_recipients": directory.total_recipients})

            step = "store_properties"
            self._enter(MigrationState.STORING, run)
            step_started = time.time()
            self.cache.store(directory)
            self._step_done(run, step, step_started, "Directory stored")

            step = "create_sheet"
            self._enter(MigrationState.CREATING_MIRROR, run)
            step_started = time.time()
            if self.table.exists():
                self._step_done(run, step, step_started, f"Sheet '{self.table.name}' already exists",
                                {"created": False})
            else:
                rows = directory.to_rows()
                self.table.create(rows)
                run.mirror_created = True
                self._step_done(run, step, step_started, f"Created sheet with {len(rows)} rows",
                                {"created": True, "rows": len(rows)})

            step = "mark_complete"
            step_started = time.time()
            self.mark_complete()
            self._enter(MigrationState.COMPLETE, run)
            self._step_done(run, step, step_started, "Migration flag set")

        except Exception as e:
            self._enter(MigrationState.FAILED, run)
            run.duration_ms = (time.time() - started) * 1000
            self.telemetry.record(MIGRATION, step, "error", str(e), {"error_type": type(e).__name__})
            self.telemetry.record(MIGRATION, "migration_complete", "error", f"Migration failed: {e}",
                                  {"failed_step": step, "total_duration_ms": round(run.duration_ms, 2)})
            self.telemetry.increment(MIGRATION, "failed_migrations")
            logger.error(f"Migration failed at {step}: {e}")
            raise MigrationFailure(step, str(e)) from e
        finally:
            self._running = False

        run.duration_ms = (time.time() - started) * 1000
        run.campus_count = directory.campus_count
        run.total_recipients = directory.total_recipients
        self.telemetry.record(MIGRATION, "migration_complete", "success", "Migration completed",
                              {"campus_count": run.campus_count,
                               "total_recipients": run.total_recipients,
                               "total_duration_ms": round(run.duration_ms, 2)},
                              duration_ms=run.duration_ms)
        self.telemetry.increment(MIGRATION, "successful_migrations")
        self.telemetry.set_fields(MIGRATION, last_success=self.clock().isoformat())
        return run

    def status(self) -> Dict[str, Any]:
        return {
            "complete": self.is_complete(),
            "completed_at": self.completed_at(),
            "state": self.state.value,
        }

    def _enter(self, state: MigrationState, run: MigrationRun) -> None:
        self.state = state
        run.state = state

    def _step_done(self, run: MigrationRun, step: str, started: float, message: str,
                   data: Optional[Dict[str, Any]] = None) -> None:
        duration_ms = (time.time() - started) * 1000
        run.step_durations[step] = round(duration_ms, 2)
        self.telemetry.record(MIGRATION, step, "success", message, data, duration_ms=duration_ms)
