"""
Versioned directory schema.

The directory is persisted as one tagged JSON record. Decoding is a single
typed step: decode_directory returns either a Directory or a DecodeError,
never raising for malformed input.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .validator import is_valid_email

SCHEMA_VERSION = 1


class CampusRecord(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")

    recipients: List[str]
    folder_reference: str

    @field_validator('recipients')
    @classmethod
    def recipients_must_be_valid(cls, v):
        seen = set()
        for recipient in v:
            if not is_valid_email(recipient):
                raise ValueError(f'invalid recipient address: {recipient!r}')
            lowered = recipient.lower()
            if lowered in seen:
                raise ValueError(f'duplicate recipient address: {recipient!r}')
            seen.add(lowered)
        return v


def _check_campus_keys(v):
    for key in v:
        if not key.strip():
            raise ValueError('campus key cannot be empty')
        if key != key.strip().lower():
            raise ValueError(f'campus key must be trimmed and lowercase: {key!r}')
    return v


class DirectoryPayload(BaseModel):
    """Wire form of the directory as stored under the durable key."""
    model_config = ConfigDict(strict=True, extra="forbid")

    schema_version: Literal[1]
    campus_data: Dict[str, CampusRecord]
    last_updated: Optional[str]
    migration_complete: bool

    @field_validator('campus_data')
    @classmethod
    def campus_keys_must_be_normalized(cls, v):
        return _check_campus_keys(v)

    @field_validator('last_updated')
    @classmethod
    def last_updated_must_be_naive_iso(cls, v):
        if not v:
            return v
        try:
            parsed = datetime.fromisoformat(v)
        except ValueError:
            raise ValueError(f'last_updated is not an ISO timestamp: {v!r}')
        if parsed.tzinfo is not None:
            raise ValueError(f'last_updated must be a local timestamp without offset: {v!r}')
        return v


class Directory(BaseModel):
    """Campus key -> CampusRecord mapping plus bookkeeping fields."""

    campuses: Dict[str, CampusRecord] = Field(default_factory=dict)
    last_updated: Optional[datetime] = None
    migration_complete: bool = False

    @field_validator('campuses')
    @classmethod
    def campus_keys_must_be_normalized(cls, v):
        return _check_campus_keys(v)

    @classmethod
    def combine(cls, recipients: Mapping[str, List[str]], folder_references: Mapping[str, str]) -> "Directory":
        """
        Merge recipient lists with folder references.

        Campuses present in only one source are kept, with empty recipients
        or an empty folder reference as applicable. Recipient campuses come
        first in their original order.
        """
        campuses: Dict[str, CampusRecord] = {}
        for campus, emails in recipients.items():
            campuses[campus] = CampusRecord(
                recipients=list(emails),
                folder_reference=folder_references.get(campus, ""),
            )
        for campus, folder_id in folder_references.items():
            if campus not in campuses:
                campuses[campus] = CampusRecord(recipients=[], folder_reference=folder_id)
        return cls(campuses=campuses)

    def get(self, campus_key: str) -> Optional[CampusRecord]:
        return self.campuses.get(campus_key)

    @property
    def campus_count(self) -> int:
        return len(self.campuses)

    @property
    def total_recipients(self) -> int:
        return sum(len(record.recipients) for record in self.campuses.values())

    def is_empty(self) -> bool:
        return self.total_recipients == 0

    def to_rows(self) -> List[List[str]]:
        """One [campus, recipient] row per pair, in campus insertion order."""
        rows = []
        for campus, record in self.campuses.items():
            for recipient in record.recipients:
                rows.append([campus, recipient])
        return rows

    def to_payload(self) -> Dict:
        return {
            "schema_version": SCHEMA_VERSION,
            "campus_data": {
                campus: record.model_dump() for campus, record in self.campuses.items()
            },
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "migration_complete": self.migration_complete,
        }


@dataclass
class DecodeError:
    kind: str  # parse_error|shape_mismatch|version_mismatch
    message: str


@dataclass
class DecodeResult:
    directory: Optional[Directory] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.directory is not None


def payload_to_directory(payload: DirectoryPayload) -> Directory:
    last_updated = datetime.fromisoformat(payload.last_updated) if payload.last_updated else None
    return Directory(
        campuses=dict(payload.campus_data),
        last_updated=last_updated,
        migration_complete=payload.migration_complete,
    )


def decode_directory(raw: str) -> DecodeResult:
    """Parse and validate a stored payload in one step."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        return DecodeResult(error=DecodeError("parse_error", f"Invalid JSON: {e}"))

    if not isinstance(data, dict):
        return DecodeResult(error=DecodeError("shape_mismatch", "Payload is not an object"))

    if "schema_version" in data and data["schema_version"] != SCHEMA_VERSION:
        return DecodeResult(error=DecodeError(
            "version_mismatch",
            f"Unsupported schema version {data['schema_version']!r}, expected {SCHEMA_VERSION}"
        ))

    try:
        payload = DirectoryPayload.model_validate(data)
    except ValidationError as e:
        return DecodeResult(error=DecodeError("shape_mismatch", summarize_errors(e)))

    return DecodeResult(directory=payload_to_directory(payload))


def summarize_errors(error: ValidationError, limit: int = 3) -> str:
    parts = []
    for item in error.errors()[:limit]:
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}")
    if error.error_count() > limit:
        parts.append(f"... {error.error_count() - limit} more")
    return "; ".join(parts)
