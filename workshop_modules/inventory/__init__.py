"""
Inventory Module (``workshop_modules.inventory``).

Stocked parts per owner: CRUD, low-stock report and manual stock counts.
The table itself and the Stock Ledger live in the kernel because every
reservation path writes ``quantity``.
"""

from workshop_modules.inventory.service import InventoryService

__all__ = ["InventoryService"]
