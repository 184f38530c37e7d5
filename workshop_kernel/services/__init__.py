"""Kernel write-side services (flush-only; callers own the transaction)."""

from workshop_kernel.services.sequence_service import SequenceService
from workshop_kernel.services.status_history_recorder import StatusHistoryRecorder
from workshop_kernel.services.stock_ledger import (
    DecrementResult,
    DecrementStatus,
    StockLedger,
)

__all__ = [
    "SequenceService",
    "StatusHistoryRecorder",
    "StockLedger",
    "DecrementResult",
    "DecrementStatus",
]
