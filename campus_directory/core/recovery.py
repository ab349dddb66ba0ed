"""
Recovery manager - detects a missing or corrupted recipients table and
rebuilds it.

Sources are tried as an ordered list of named strategies, cache first and
seed data last. Every attempt is kept in the outcome.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from util.logging import logger

from .cache import CacheManager
from .schema import Directory
from .seed import DEFAULT_SEED, SeedData
from .table import ExternalTable, batch_read
from .telemetry import RUNTIME, Telemetry
from .validator import validate_emails


class RecoveryFailure(Exception):
    """No source could rebuild the recipients table."""

    def __init__(self, outcome: "RecoveryOutcome"):
        reasons = "; ".join(f"{a.strategy}: {a.reason}" for a in outcome.attempts)
        super().__init__(f"Recovery failed ({reasons or 'no strategies attempted'})")
        self.outcome = outcome


@dataclass
class StrategyAttempt:
    strategy: str
    succeeded: bool
    reason: str = ""
    campus_count: int = 0
    total_recipients: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "succeeded": self.succeeded,
            "reason": self.reason,
            "campus_count": self.campus_count,
            "total_recipients": self.total_recipients,
        }


@dataclass
class RecoveryOutcome:
    success: bool
    action: str
    details: Dict[str, Any] = field(default_factory=dict)
    attempts: List[StrategyAttempt] = field(default_factory=list)
    directory: Optional[Directory] = None

    def raise_for_failure(self) -> "RecoveryOutcome":
        if not self.success:
            raise RecoveryFailure(self)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "details": self.details,
            "attempts": [a.to_dict() for a in self.attempts],
        }


class RecoveryManager:
    """Rebuilds the recipients table from the first usable data source."""

    def __init__(self, table: ExternalTable, cache: CacheManager, telemetry: Telemetry,
                 seed: SeedData = DEFAULT_SEED,
                 clock: Callable[[], datetime] = datetime.now):
        self.table = table
        self.cache = cache
        self.telemetry = telemetry
        self.seed = seed
        self.clock = clock

    @property
    def strategies(self) -> List[Tuple[str, Callable[[], Tuple[Optional[Directory], str]]]]:
        return [
            ("cache", self._from_cache),
            ("seed", self._from_seed),
        ]

    def validate_and_recover(self) -> RecoveryOutcome:
        """Check the recipients table and rebuild it when it is missing or unusable."""
        reason = self._detect_problem()
        if reason is None:
            self.telemetry.record(RUNTIME, "validation_passed", "info", "Recipients sheet is healthy")
            return RecoveryOutcome(success=True, action="no_recovery_needed",
                                   details={"sheet": self.table.name})

        self.telemetry.record(RUNTIME, "recovery_needed", "warning", reason)
        return self.recover(reason)

    def recover(self, reason: str = "manual", force: bool = False) -> RecoveryOutcome:
        """Rebuild the recipients table from the first strategy that yields data."""
        started = time.time()
        attempts: List[StrategyAttempt] = []

        for name, strategy in self.strategies:
            try:
                directory, note = strategy()
            except Exception as e:
                attempts.append(StrategyAttempt(name, False, f"{type(e).__name__}: {e}"))
                continue

            if directory is None or directory.is_empty():
                attempts.append(StrategyAttempt(name, False, note))
                continue

            try:
                self._rebuild_table(directory, name)
            except Exception as e:
                attempts.append(StrategyAttempt(name, False, f"Sheet rebuild failed: {e}"))
                continue

            attempts.append(StrategyAttempt(name, True, note, directory.campus_count,
                                            directory.total_recipients))
            details = {
                "reason": reason,
                "forced": force,
                "campus_count": directory.campus_count,
                "total_recipients": directory.total_recipients,
                "data_source": name,
                "duration_ms": round((time.time() - started) * 1000, 2),
            }
            action = f"recovered_from_{name}"
            self.telemetry.record(RUNTIME, action, "success",
                                  f"Recipients sheet rebuilt from {name} data", details,
                                  duration_ms=(time.time() - started) * 1000)
            logger.log_recovery(action, True, {"campus_count": directory.campus_count})
            return RecoveryOutcome(True, action, details, attempts, directory)

        details = {
            "reason": reason,
            "forced": force,
            "failures": {a.strategy: a.reason for a in attempts},
        }
        self.telemetry.record(RUNTIME, "recovery_failed", "error",
                              "No valid data source available to rebuild the recipients sheet", details)
        logger.log_recovery("recovery_failed", False, details)
        return RecoveryOutcome(False, "recovery_failed", details, attempts)

    def _detect_problem(self) -> Optional[str]:
        try:
            if not self.table.exists():
                return f"Sheet '{self.table.name}' does not exist"
        except Exception as e:
            return f"Could not check sheet: {e}"

        read = batch_read(self.table)
        if not read.success:
            return read.error
        if not read.has_valid_headers:
            return "Sheet has invalid headers"
        if read.is_empty:
            return "Sheet has no data rows"

        validation = validate_emails(read.rows)
        if not validation.valid and validation.invalid:
            return f"Sheet has no valid rows ({len(validation.invalid)} invalid)"
        return None

    def _from_cache(self) -> Tuple[Optional[Directory], str]:
        if not self.cache.exists():
            return None, "No cached directory"
        directory = self.cache.get()
        if directory is None:
            return None, "No cached directory"
        if directory.is_empty():
            return None, "Cached directory has no recipients"
        return directory, "Cached directory"

    def _from_seed(self) -> Tuple[Optional[Directory], str]:
        if self.seed.is_empty():
            return None, "Seed data is empty"
        return Directory.combine(self.seed.recipients, self.seed.folder_references), f"Seed version {self.seed.version}"

    def _rebuild_table(self, directory: Directory, source: str) -> None:
        if self.table.exists():
            self.table.delete()
        note = f"Sheet recovered from {source} data on {self.clock().isoformat()}"
        self.table.create(directory.to_rows(), note=note)
