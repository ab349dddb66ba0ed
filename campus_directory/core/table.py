"""
External table adapters.

The recipients table is two columns, header ["Campus", "Recipient"], one
row per (campus, recipient) pair. Reads always fetch the whole range in a
single request.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .config import TABLE_HEADERS
from .telemetry import RUNTIME, Telemetry
from .validator import (
    CampusNameCheck,
    DuplicateResolution,
    ValidationResult,
    resolve_duplicate_campus_rows,
    validate_campus_names,
    validate_emails,
)


class TableAccessError(Exception):
    """Raised when the external table cannot be read or written."""
    pass


class ExternalTable(ABC):
    """Abstract interface for the editable recipients table."""

    name: str

    @abstractmethod
    def exists(self) -> bool:
        pass

    @abstractmethod
    def read_all(self) -> List[List[Any]]:
        """Return every row, header included, in one round trip."""
        pass

    @abstractmethod
    def create(self, rows: Sequence[Sequence[str]], note: Optional[str] = None) -> None:
        """Create the table with the header row followed by `rows`."""
        pass

    @abstractmethod
    def delete(self) -> None:
        pass

    @abstractmethod
    def write_cell(self, row: int, column: int, value: str) -> None:
        """Write one cell. Row and column are 1-based."""
        pass


class ReferenceTable(ABC):
    """Read-only source of campus -> folder identifier."""

    @abstractmethod
    def read_folder_references(self) -> Dict[str, str]:
        pass


class InMemoryTable(ExternalTable):
    """List-backed table used by tests and offline runs."""

    def __init__(self, name: str = "Recipients", rows: Optional[List[List[Any]]] = None):
        self.name = name
        self._rows = [list(r) for r in rows] if rows is not None else None
        self.note: Optional[str] = None
        self.read_count = 0

    def exists(self) -> bool:
        return self._rows is not None

    def read_all(self) -> List[List[Any]]:
        if self._rows is None:
            raise TableAccessError(f"Sheet '{self.name}' does not exist")
        self.read_count += 1
        return [list(r) for r in self._rows]

    def create(self, rows: Sequence[Sequence[str]], note: Optional[str] = None) -> None:
        if self._rows is not None:
            raise TableAccessError(f"Sheet '{self.name}' already exists")
        self._rows = [list(TABLE_HEADERS)] + [list(r) for r in rows]
        self.note = note

    def delete(self) -> None:
        self._rows = None
        self.note = None

    def write_cell(self, row: int, column: int, value: str) -> None:
        if self._rows is None:
            raise TableAccessError(f"Sheet '{self.name}' does not exist")
        while len(self._rows) < row:
            self._rows.append([])
        target = self._rows[row - 1]
        while len(target) < column:
            target.append("")
        target[column - 1] = value


class InMemoryReferenceTable(ReferenceTable):
    def __init__(self, references: Optional[Dict[str, str]] = None):
        self.references = references

    def read_folder_references(self) -> Dict[str, str]:
        if self.references is None:
            raise TableAccessError("Reference sheet does not exist")
        return dict(self.references)


@dataclass
class TableReadResult:
    success: bool
    rows: List[List[Any]] = field(default_factory=list)
    error: Optional[str] = None
    has_valid_headers: bool = False
    is_empty: bool = True
    data_rows: int = 0
    read_ms: float = 0.0


def headers_valid(header: Sequence[Any]) -> bool:
    if not header or len(header) < len(TABLE_HEADERS):
        return False
    cells = [str(c).strip().lower() for c in header[:len(TABLE_HEADERS)]]
    return cells == [h.lower() for h in TABLE_HEADERS]


def batch_read(table: ExternalTable) -> TableReadResult:
    """Structural whole-range read. Never raises."""
    started = time.time()
    try:
        rows = table.read_all()
    except Exception as e:
        return TableReadResult(
            success=False,
            error=f"Failed to read sheet: {e}",
            read_ms=(time.time() - started) * 1000,
        )

    read_ms = (time.time() - started) * 1000
    if not isinstance(rows, list) or not all(isinstance(r, (list, tuple)) for r in rows):
        return TableReadResult(success=False, error="Sheet data is not tabular", read_ms=read_ms)

    data_rows = [r for r in rows[1:] if any(str(c).strip() for c in r if c is not None)]
    return TableReadResult(
        success=True,
        rows=[list(r) for r in rows],
        has_valid_headers=bool(rows) and headers_valid(rows[0]),
        is_empty=len(data_rows) == 0,
        data_rows=len(data_rows),
        read_ms=read_ms,
    )


@dataclass
class RecipientsRead:
    """Reconciled campus -> recipients plus every validation result behind it."""
    data: Dict[str, List[str]]
    read: TableReadResult
    validation: ValidationResult
    campus_check: CampusNameCheck
    duplicates: DuplicateResolution


def read_recipients(table: ExternalTable, expected_keys: Sequence[str], telemetry: Telemetry) -> RecipientsRead:
    """
    Batch read the recipients table, validate it and group recipients by campus.

    Raises TableAccessError when the table cannot be read at all. Row-level
    problems are recorded as runtime telemetry and never abort the read.
    """
    read = batch_read(table)
    telemetry.increment(RUNTIME, "table_access")
    if not read.success:
        telemetry.record(RUNTIME, "sheet_read", "error", read.error or "Sheet read failed")
        raise TableAccessError(read.error or f"Failed to read sheet '{table.name}'")

    telemetry.record(RUNTIME, "sheet_read", "info", f"Read {read.data_rows} data rows",
                     {"sheet": table.name, "rows": len(read.rows)}, duration_ms=read.read_ms)

    validation = validate_emails(read.rows)
    campus_check = validate_campus_names(validation.valid, expected_keys)
    duplicates = resolve_duplicate_campus_rows(validation.valid)

    if validation.errors:
        telemetry.increment(RUNTIME, "validation_error", len(validation.errors))
        telemetry.record(RUNTIME, "validation_errors", "warning",
                         f"{len(validation.errors)} invalid rows skipped",
                         {"errors": validation.errors[:10], "summary": validation.summary})

    warnings = validation.warnings + campus_check.warnings + duplicates.duplicate_warnings
    if warnings:
        telemetry.increment(RUNTIME, "validation_warning", len(warnings))
        telemetry.record(RUNTIME, "validation_warnings", "warning",
                         f"{len(warnings)} validation warnings",
                         {"warnings": warnings[:10], "suggestions": campus_check.suggestions})

    return RecipientsRead(
        data=duplicates.data,
        read=read,
        validation=validation,
        campus_check=campus_check,
        duplicates=duplicates,
    )
