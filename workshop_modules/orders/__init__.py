"""
Orders Module (``workshop_modules.orders``).

Service orders, created directly (reserving stock at creation) or from an
approved budget (stock already reserved), then moved through
pending -> in-progress -> completed, or cancelled.
"""

from workshop_modules.orders.models import Order
from workshop_modules.orders.service import OrderService

__all__ = ["Order", "OrderService"]
