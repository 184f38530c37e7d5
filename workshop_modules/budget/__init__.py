"""
Budget Module (``workshop_modules.budget``).

Quotes for a customer's vehicle.  A budget is created pending and is
approved (reserving stock for every inventory-linked part) or rejected
exactly once.
"""

from workshop_modules.budget.models import Budget
from workshop_modules.budget.service import BudgetService

__all__ = ["Budget", "BudgetService"]
