"""
Workshop Kernel

The inventory reservation and status-transition core of the workshop
management system:
- Atomic, never-negative stock decrements (Stock Ledger)
- Append-only status history
- Lifecycle guards for budgets and service orders
- Owner-scoped storage access with optimistic versioning
"""

__version__ = "0.1.0"
