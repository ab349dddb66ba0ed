"""
Edit-triggered cache invalidation.

Any edit to the recipients sheet clears the cache, whichever cell changed.
Edits to other sheets are ignored.
"""

import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from util.logging import logger

from .cache import CacheManager
from .telemetry import INVALIDATION, RUNTIME, Telemetry

A1_ROW = re.compile(r"^[A-Za-z]*(\d+)")


class TableEditEvent(BaseModel):
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

    @property
    def first_row(self) -> Optional[int]:
        address = self.range_address.split("!")[-1]
        match = A1_ROW.match(address)
        return int(match.group(1)) if match else None


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def classify_edit(old_value: Any, new_value: Any) -> str:
    """addition, deletion, modification or unknown."""
    had, has = _present(old_value), _present(new_value)
    if not had and has:
        return "addition"
    if had and not has:
        return "deletion"
    if had and has:
        return "modification"
    return "unknown"


class InvalidationHandler:
    def __init__(self, cache: CacheManager, telemetry: Telemetry, sheet_name: str):
        self.cache = cache
        self.telemetry = telemetry
        self.sheet_name = sheet_name

    def handle_edit(self, event: TableEditEvent) -> Dict[str, Any]:
        """Clear the cache for an edit to the recipients sheet. Never raises."""
        if event.sheet_name != self.sheet_name:
            logger.debug(f"Ignoring edit on sheet '{event.sheet_name}'")
            return {"invalidated": False, "reason": "other_sheet"}

        try:
            edit_type = classify_edit(event.old_value, event.new_value)
            reason = "header_edit" if event.first_row == 1 else "recipient_edit"

            self.cache.clear()
            self.telemetry.record(
                INVALIDATION, "cache_invalidated", "info",
                f"Cache cleared after {edit_type} in {event.range_address or 'unknown range'}",
                {
                    "sheet_name": event.sheet_name,
                    "range": event.range_address,
                    "edit_type": edit_type,
                    "old_value": event.old_value,
                    "new_value": event.new_value,
                    "reason": reason,
                },
            )
            logger.log_invalidation(event.sheet_name, edit_type, reason, event.range_address)
            return {"invalidated": True, "edit_type": edit_type, "reason": reason}

        except Exception as e:
            logger.error(f"Edit handling failed for {event.range_address}: {e}")
            self.telemetry.record(RUNTIME, "invalidation_error", "error", f"Edit handling failed: {e}")
            try:
                self.cache.clear()
            except Exception as clear_error:
                logger.error(f"Cache clear after failed edit handling also failed: {clear_error}")
                return {"invalidated": False, "reason": "error"}
            return {"invalidated": True, "reason": "error"}
