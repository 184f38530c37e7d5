"""Read-only selectors (the query side)."""

from workshop_kernel.selectors.inventory_selector import InventorySelector
from workshop_kernel.selectors.status_history_selector import StatusHistorySelector

__all__ = ["InventorySelector", "StatusHistorySelector"]
