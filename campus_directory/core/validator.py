"""
Recipient row validation - pure functions, no I/O.

Rows come straight from the recipients table: index 0 is the header row and
is skipped. Row numbers in every message are 1-based sheet row numbers, so
the first data row is "Row 2".
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

# Local part per RFC 5322 atext plus dots; domain must carry at least one dot.
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


@dataclass
class ValidEntry:
    campus: str
    recipient: str
    row_number: int
    original_campus: str


@dataclass
class InvalidEntry:
    row_number: int
    campus: str
    recipient: str
    reason: str


@dataclass
class ValidationResult:
    """Outcome of validate_emails. Never persisted."""
    valid: List[ValidEntry] = field(default_factory=list)
    invalid: List[InvalidEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=lambda: {
        "total_rows": 0,
        "valid_emails": 0,
        "invalid_emails": 0,
        "empty_rows": 0,
        "duplicate_emails": 0,
    })

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "valid_count": len(self.valid),
            "invalid_count": len(self.invalid),
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "summary": dict(self.summary),
        }


@dataclass
class CampusNameCheck:
    valid_campuses: List[str] = field(default_factory=list)
    invalid_campuses: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    suggestions: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class DuplicateResolution:
    data: Dict[str, List[str]] = field(default_factory=dict)
    duplicate_warnings: List[str] = field(default_factory=list)
    summary: Dict[str, int] = field(default_factory=dict)


def _cell(row: Sequence[Any], index: int) -> str:
    if row is None or index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def is_valid_email(email: Any) -> bool:
    """Return True when `email` passes the address format rule."""
    if not isinstance(email, str):
        return False
    email = email.strip()
    if not email or ".." in email:
        return False
    return EMAIL_PATTERN.match(email) is not None


def diagnose_email(email: str) -> List[str]:
    """Human readable reasons an address was rejected."""
    issues = []
    at_count = email.count("@")

    if at_count == 0:
        issues.append("Missing @ symbol")
    elif at_count > 1:
        issues.append("Multiple @ symbols")

    if email.startswith("@") or email.endswith("@"):
        issues.append("@ symbol at beginning or end")

    if at_count == 1 and not email.endswith("@"):
        domain = email.split("@", 1)[1]
        if "." not in domain:
            issues.append("Missing domain extension")

    if ".." in email:
        issues.append("Consecutive dots")

    if not issues:
        issues.append("Invalid characters or structure")

    return issues


def validate_emails(rows: Sequence[Sequence[Any]]) -> ValidationResult:
    """
    Validate every data row, accumulating problems instead of stopping.

    Empty rows are counted and skipped. Rows missing one field, or carrying a
    malformed address, are errors and are excluded. A repeated address is a
    warning only and the row is kept.
    """
    result = ValidationResult()
    seen_emails = set()

    for index in range(1, len(rows or [])):
        row = rows[index]
        row_number = index + 1
        campus = _cell(row, 0)
        recipient = _cell(row, 1)

        if not campus and not recipient:
            result.summary["empty_rows"] += 1
            continue

        result.summary["total_rows"] += 1

        if not campus:
            message = f'Row {row_number}: Missing campus name for recipient "{recipient}"'
            result.errors.append(message)
            result.invalid.append(InvalidEntry(row_number, campus, recipient, "missing_campus"))
            result.summary["invalid_emails"] += 1
            continue

        if not recipient:
            message = f'Row {row_number}: Missing recipient email for campus "{campus}"'
            result.errors.append(message)
            result.invalid.append(InvalidEntry(row_number, campus, recipient, "missing_recipient"))
            result.summary["invalid_emails"] += 1
            continue

        lowered = recipient.lower()
        if lowered in seen_emails:
            result.warnings.append(
                f'Row {row_number}: Duplicate email address "{recipient}" (campus: {campus})'
            )
            result.summary["duplicate_emails"] += 1
        seen_emails.add(lowered)

        if not is_valid_email(recipient):
            reasons = ", ".join(diagnose_email(recipient))
            result.errors.append(
                f'Row {row_number}: Invalid email format - "{recipient}" (campus: {campus}) - {reasons}'
            )
            result.invalid.append(InvalidEntry(row_number, campus, recipient, reasons))
            result.summary["invalid_emails"] += 1
            continue

        result.valid.append(ValidEntry(
            campus=campus.lower(),
            recipient=recipient,
            row_number=row_number,
            original_campus=campus,
        ))
        result.summary["valid_emails"] += 1

    return result


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def suggest_campus_names(campus: str, expected_keys: Iterable[str], max_distance: int = 2) -> List[str]:
    """Expected keys that contain, are contained in, or are close to `campus`."""
    suggestions = []
    for expected in expected_keys:
        if not expected:
            continue
        if expected in campus or campus in expected or levenshtein_distance(campus, expected) <= max_distance:
            suggestions.append(expected)
    return suggestions


def validate_campus_names(valid_rows: Iterable[ValidEntry], expected_keys: Iterable[str]) -> CampusNameCheck:
    """Flag campus keys that are not in `expected_keys`. Unknown keys stay accepted."""
    expected = [key.strip().lower() for key in expected_keys if key]
    expected_set = set(expected)
    check = CampusNameCheck()
    seen = set()

    for entry in valid_rows:
        campus = entry.campus
        if campus in seen:
            continue
        seen.add(campus)

        if campus in expected_set:
            check.valid_campuses.append(campus)
            continue

        check.invalid_campuses.append(campus)
        suggestions = suggest_campus_names(campus, expected)
        check.suggestions[campus] = suggestions

        message = f'Row {entry.row_number}: Unknown campus name "{entry.original_campus}"'
        if suggestions:
            message += f" - Did you mean: {', '.join(suggestions)}?"
        check.warnings.append(message)

    return check


def resolve_duplicate_campus_rows(valid_rows: Iterable[ValidEntry]) -> DuplicateResolution:
    """
    Group recipients under their campus key.

    The first occurrence of a (campus, recipient) pair wins; every later
    repetition is dropped with a warning naming its row and the first row.
    Recipients are compared case-insensitively.
    """
    resolution = DuplicateResolution()
    first_seen: Dict[tuple, int] = {}
    total = 0

    for entry in valid_rows:
        total += 1
        pair = (entry.campus, entry.recipient.lower())
        first_row: Optional[int] = first_seen.get(pair)

        if first_row is not None:
            resolution.duplicate_warnings.append(
                f'Row {entry.row_number}: Duplicate campus-recipient combination - '
                f'"{entry.campus}" with "{entry.recipient}" (first seen at row {first_row})'
            )
            continue

        first_seen[pair] = entry.row_number
        resolution.data.setdefault(entry.campus, []).append(entry.recipient)

    resolution.summary = {
        "total_rows": total,
        "unique_campuses": len(resolution.data),
        "unique_pairs": len(first_seen),
        "duplicates_removed": len(resolution.duplicate_warnings),
    }
    return resolution
