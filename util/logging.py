"""
Structured logging for the campus directory subsystem.
Lowest-level diagnostic channel: telemetry, cache, recovery and invalidation events.
"""

import logging
from typing import Any, Dict, Optional

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class StructuredLogger:
    """Structured logger for directory operations."""

    def __init__(self, name: str = "campus_directory"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None,
                      level: str = "info"):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(LEVELS.get(level, logging.INFO), message)

    def log_telemetry_event(self, domain: str, key: str, level: str, message: str):
        """Echo a telemetry record to the console channel."""
        self.logger.log(
            LEVELS.get(level, logging.INFO),
            f"{domain.upper()} [{level.upper()}] {key}: {message}"
        )

    def log_cache_event(self, event: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a cache operation."""
        level = "warning" if status in ("corrupt", "stale", "skipped") else "info"
        self.log_operation(f"cache.{event}", status, details, level=level)

    def log_recovery(self, action: str, success: bool, details: Optional[Dict[str, Any]] = None):
        """Log a recovery outcome."""
        log_details = {"action": action}
        if details:
            log_details.update(details)

        status = "success" if success else "failed"
        self.log_operation("recovery", status, log_details, level="info" if success else "error")

    def log_invalidation(self, sheet_name: str, edit_type: str, reason: str, range_address: str = None):
        """Log a cache invalidation caused by a table edit."""
        details = {"sheet": sheet_name, "edit_type": edit_type, "reason": reason}
        if range_address:
            details["range"] = range_address

        self.log_operation("invalidation", "cleared", details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()
