"""
HTTP surface for the campus directory: lookups, operator triggers and status.
"""

from fastapi import FastAPI, HTTPException, Depends

from .schemas import (
    HealthResponse,
    CampusResponse,
    TableEditRequest,
    TableEditResponse,
    RefreshResponse,
    ValidationReportResponse,
    RecoveryResponse,
    MigrationResetResponse,
    CacheStatusResponse,
    RuntimeReportResponse,
    MigrationReportResponse,
)
from ..core.config import VERSION, debug_enabled
from ..core.db import health_check
from ..core.invalidation import TableEditEvent
from ..core.recovery import RecoveryFailure
from ..core.service import DirectoryService, get_service
from ..core.store import SQLiteKeyValueStore
from ..core.table import TableAccessError, read_recipients
from util.logging import logger

app = FastAPI(
    title="Campus Directory API",
    version=VERSION,
    description="Campus recipients and folder directory with cache-first lookups",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None
)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint(service: DirectoryService = Depends(get_service)):
    """Check system health."""
    if isinstance(service.store, SQLiteKeyValueStore):
        db_health = health_check(service.store.db_path)
    else:
        db_health = True

    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        migration_complete=service.migration.is_complete(),
        cache_exists=service.cache.exists()
    )


@app.get("/campus/{campus}", response_model=CampusResponse)
def resolve_campus(campus: str, service: DirectoryService = Depends(get_service)):
    """Resolve a campus to its recipients and folder reference."""
    info = service.lookup.resolve(campus)
    return CampusResponse(
        campus=campus.strip().lower(),
        recipients=info.recipients,
        folder_reference=info.folder_reference
    )


@app.get("/status/cache", response_model=CacheStatusResponse)
def cache_status(service: DirectoryService = Depends(get_service)):
    return CacheStatusResponse(**service.cache_status())


@app.get("/status/runtime", response_model=RuntimeReportResponse)
def runtime_status(service: DirectoryService = Depends(get_service)):
    return RuntimeReportResponse(**service.runtime_report())


@app.get("/status/migration", response_model=MigrationReportResponse)
def migration_status(service: DirectoryService = Depends(get_service)):
    return MigrationReportResponse(**service.migration_report())


@app.post("/cache/refresh", response_model=RefreshResponse)
def refresh_cache(service: DirectoryService = Depends(get_service)):
    """Clear the cache and rebuild it from the recipients sheet."""
    try:
        directory = service.lookup.refresh_cache()
    except TableAccessError as e:
        logger.error(f"Manual refresh failed: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return RefreshResponse(
        success=True,
        campus_count=directory.campus_count,
        total_recipients=directory.total_recipients
    )


@app.post("/recipients/validate", response_model=ValidationReportResponse)
def validate_recipients(service: DirectoryService = Depends(get_service)):
    """Validate the recipients sheet without changing anything."""
    if not service.table.exists():
        return ValidationReportResponse(success=False, sheet_exists=False,
                                        error=f"Sheet '{service.table.name}' does not exist")

    try:
        result = read_recipients(service.table, service.lookup.expected_keys, service.telemetry)
    except TableAccessError as e:
        return ValidationReportResponse(success=False, sheet_exists=True, error=str(e))

    report = result.validation.to_dict()
    report["warnings"] = (report["warnings"] + result.campus_check.warnings
                          + result.duplicates.duplicate_warnings)
    return ValidationReportResponse(success=True, sheet_exists=True, **report)


@app.post("/recipients/recover", response_model=RecoveryResponse)
def recover_recipients(force: bool = False, service: DirectoryService = Depends(get_service)):
    """Check the recipients sheet and rebuild it if needed, or unconditionally with force."""
    if force:
        outcome = service.recovery.recover(reason="manual", force=True)
    else:
        outcome = service.recovery.validate_and_recover()

    try:
        outcome.raise_for_failure()
    except RecoveryFailure as e:
        logger.error(str(e))
        raise HTTPException(status_code=503, detail=e.outcome.to_dict())

    return RecoveryResponse(**outcome.to_dict())


@app.post("/migration/reset", response_model=MigrationResetResponse)
def reset_migration(service: DirectoryService = Depends(get_service)):
    service.migration.reset()
    return MigrationResetResponse(success=True, migration_complete=service.migration.is_complete())


@app.post("/events/table-edit", response_model=TableEditResponse)
def table_edit(request: TableEditRequest, service: DirectoryService = Depends(get_service)):
    """Edit notification callback from the recipients sheet."""
    event = TableEditEvent(**request.model_dump())
    return TableEditResponse(**service.invalidation.handle_edit(event))
