from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .models import InventoryItem


class RemindError(Exception):
    """Base error for reminder operations. ``message`` is safe to show to users."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(RemindError):
    code = "not_found"


class InvalidFormat(RemindError, ValueError):
    code = "invalid_format"


class OutOfRange(RemindError, ValueError):
    code = "out_of_range"


class InsufficientInventory(RemindError):
    code = "insufficient_inventory"

    def __init__(self, message: str, items: Optional[List["InventoryItem"]] = None) -> None:
        super().__init__(message)
        self.items = list(items or [])


class PersistenceFailure(RemindError):
    code = "persistence_failure"


class NotifierFailure(RemindError):
    code = "notifier_failure"


class DuplicateName(InvalidFormat):
    code = "duplicate_name"
