"""Gateway to the external double-entry ledger engine."""

from .exceptions import LedgerError, LedgerRejectedError, LedgerUnavailableError
from .gateway import LedgerGateway
from .models import (
    AutoMatch,
    Direction,
    Frequency,
    Ledger,
    NewEvent,
    NewTransaction,
    RecordedTransaction,
    ScheduledEvent,
)
from .postgres import PostgresLedgerGateway

__all__ = [
    "AutoMatch",
    "Direction",
    "Frequency",
    "Ledger",
    "LedgerError",
    "LedgerGateway",
    "LedgerRejectedError",
    "LedgerUnavailableError",
    "NewEvent",
    "NewTransaction",
    "PostgresLedgerGateway",
    "RecordedTransaction",
    "ScheduledEvent",
]
