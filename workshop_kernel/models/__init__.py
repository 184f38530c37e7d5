"""ORM models owned by the workshop kernel."""

from workshop_kernel.models.inventory_item import InventoryItem, InventoryItemInfo
from workshop_kernel.models.sequence import SequenceCounter
from workshop_kernel.models.status_history import StatusHistoryEntry, StatusHistoryRecord

__all__ = [
    "InventoryItem",
    "InventoryItemInfo",
    "SequenceCounter",
    "StatusHistoryEntry",
    "StatusHistoryRecord",
]
