"""
Request and response models for the directory HTTP surface.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict, Any


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    migration_complete: bool
    cache_exists: bool


class CampusResponse(BaseModel):
    campus: str
    recipients: List[str]
    folder_reference: str


class TableEditRequest(BaseModel):
    sheet_name: str
    range_address: str = ""
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None

    @field_validator('sheet_name')
    @classmethod
    def sheet_name_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('sheet_name cannot be empty')
        return v


class TableEditResponse(BaseModel):
    invalidated: bool
    reason: str
    edit_type: Optional[str] = None


class RefreshResponse(BaseModel):
    success: bool
    campus_count: int
    total_recipients: int


class ValidationReportResponse(BaseModel):
    success: bool
    sheet_exists: bool
    is_valid: bool = False
    valid_count: int = 0
    invalid_count: int = 0
    errors: List[str] = []
    warnings: List[str] = []
    summary: Dict[str, int] = {}
    error: Optional[str] = None


class StrategyAttemptResponse(BaseModel):
    strategy: str
    succeeded: bool
    reason: str
    campus_count: int
    total_recipients: int


class RecoveryResponse(BaseModel):
    success: bool
    action: str
    details: Dict[str, Any]
    attempts: List[StrategyAttemptResponse]


class MigrationResetResponse(BaseModel):
    success: bool
    migration_complete: bool


class CacheStatusResponse(BaseModel):
    cache_exists: bool
    migration_complete: bool
    recipients_sheet_exists: bool
    metadata: Optional[Dict[str, Any]] = None
    recent_events: List[Dict[str, Any]]


class RuntimeReportResponse(BaseModel):
    stats: Dict[str, Any]
    cache_hit_ratio: float
    recent_logs: List[Dict[str, Any]]
    total_log_entries: int


class MigrationReportResponse(BaseModel):
    is_complete: bool
    completed_at: Optional[str] = None
    summary: Dict[str, Any]
    recent_logs: List[Dict[str, Any]]
