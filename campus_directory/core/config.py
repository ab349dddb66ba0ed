"""
Directory configuration - every setting comes from the environment.
Factory functions here are only called from the composition root (service.py).
"""

import os
from pathlib import Path
from typing import List

# Durable store configuration
DB_PATH = os.getenv("DB_PATH", "./data/campus_directory.db")
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite")  # sqlite|memory

# Debug flag
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# External table configuration
TABLE_BACKEND = os.getenv("TABLE_BACKEND", "sheets")  # sheets|memory
SPREADSHEET_ID = os.getenv("SPREADSHEET_ID", "")
GOOGLE_SA_FILE = os.getenv("GOOGLE_SA_FILE", os.path.expanduser("~/.config/campus-directory/service-account.json"))
GOOGLE_HTTP_TIMEOUT_SECONDS = int(os.getenv("GOOGLE_HTTP_TIMEOUT_SECONDS", "30"))
RECIPIENTS_SHEET_NAME = os.getenv("RECIPIENTS_SHEET_NAME", "Recipients")
REFERENCE_SHEET_NAME = os.getenv("REFERENCE_SHEET_NAME", "CampusReferenceInfo")
TABLE_HEADERS = ["Campus", "Recipient"]

# Telemetry retention
MIGRATION_LOG_CAP = int(os.getenv("MIGRATION_LOG_CAP", "50"))
RUNTIME_LOG_CAP = int(os.getenv("RUNTIME_LOG_CAP", "100"))
INVALIDATION_LOG_CAP = int(os.getenv("INVALIDATION_LOG_CAP", "10"))
PERFORMANCE_SAMPLE_CAP = int(os.getenv("PERFORMANCE_SAMPLE_CAP", "10"))

# Cache freshness
CACHE_STALE_DAYS = int(os.getenv("CACHE_STALE_DAYS", "30"))

# Durable keys
DIRECTORY_KEY = "CAMPUS_DATA_CACHE"
MIGRATION_FLAG_KEY = "MIGRATION_COMPLETE"
MIGRATION_TIMESTAMP_KEY = "MIGRATION_TIMESTAMP"
MIGRATION_LOG_KEY = "MIGRATION_LOGS"
MIGRATION_SUMMARY_KEY = "MIGRATION_SUMMARY"
RUNTIME_LOG_KEY = "RUNTIME_LOGS"
RUNTIME_SUMMARY_KEY = "RUNTIME_STATS"
INVALIDATION_LOG_KEY = "CACHE_INVALIDATION_LOG"

# Version string
VERSION = "1.0.0"


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_db_directory(db_path: str = None):
    """Ensure the database directory exists."""
    Path(db_path or DB_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_store():
    """Get the configured durable key-value store."""
    if STORE_BACKEND == "memory":
        from .store import InMemoryKeyValueStore
        return InMemoryKeyValueStore()

    from .store import SQLiteKeyValueStore
    return SQLiteKeyValueStore(DB_PATH)


def get_external_table():
    """Get the configured recipients table."""
    if TABLE_BACKEND == "memory":
        from .table import InMemoryTable
        return InMemoryTable(RECIPIENTS_SHEET_NAME)

    from .sheets import GoogleSheetsTable
    return GoogleSheetsTable.from_env(sheet_name=RECIPIENTS_SHEET_NAME)


def get_reference_table():
    """Get the configured folder reference table."""
    if TABLE_BACKEND == "memory":
        from .table import InMemoryReferenceTable
        return InMemoryReferenceTable()

    from .sheets import GoogleSheetsReferenceTable
    return GoogleSheetsReferenceTable.from_env(sheet_name=REFERENCE_SHEET_NAME)


def validate_config() -> List[str]:
    """Validate configuration and return any issues."""
    issues = []

    if STORE_BACKEND not in ["sqlite", "memory"]:
        issues.append(f"STORE_BACKEND must be sqlite or memory, got '{STORE_BACKEND}'")

    if TABLE_BACKEND not in ["sheets", "memory"]:
        issues.append(f"TABLE_BACKEND must be sheets or memory, got '{TABLE_BACKEND}'")

    if TABLE_BACKEND == "sheets" and not SPREADSHEET_ID:
        issues.append("SPREADSHEET_ID is required when TABLE_BACKEND=sheets")

    for name, value in [
        ("MIGRATION_LOG_CAP", MIGRATION_LOG_CAP),
        ("RUNTIME_LOG_CAP", RUNTIME_LOG_CAP),
        ("INVALIDATION_LOG_CAP", INVALIDATION_LOG_CAP),
        ("PERFORMANCE_SAMPLE_CAP", PERFORMANCE_SAMPLE_CAP),
        ("CACHE_STALE_DAYS", CACHE_STALE_DAYS),
    ]:
        if value <= 0:
            issues.append(f"{name} must be positive")

    return issues
