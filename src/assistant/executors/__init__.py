"""Executors for the actionable intents."""

from .mark_realized import MarkRealizedExecutor
from .new_event import NewEventExecutor
from .record_transaction import RecordTransactionExecutor

__all__ = [
    "MarkRealizedExecutor",
    "NewEventExecutor",
    "RecordTransactionExecutor",
]
