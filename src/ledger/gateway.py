"""Ledger gateway protocol.

The double-entry engine lives in the database; the bot reaches it only
through these operations. Implementations raise ``LedgerRejectedError`` for
domain refusals and ``LedgerUnavailableError`` for everything else.
"""

from datetime import date
from typing import List, Optional, Protocol

from .models import (
    Ledger,
    NewEvent,
    NewTransaction,
    RecordedTransaction,
    ScheduledEvent,
)


class LedgerGateway(Protocol):
    """Operations the bot may perform on the ledger engine."""

    def bind(self, user_id: str) -> "LedgerGateway":
        """Return a gateway acting as ``user_id`` (row-level security identity)."""
        ...

    async def create_event(self, ledger_id: str, event: NewEvent) -> ScheduledEvent:
        ...

    async def record_transaction(
        self, ledger_id: str, transaction: NewTransaction
    ) -> RecordedTransaction:
        ...

    async def get_event(self, event_id: str) -> ScheduledEvent:
        ...

    async def realize_event(self, event_id: str) -> None:
        ...

    async def unrealize_event(self, event_id: str) -> None:
        ...

    async def realize_occurrence(
        self, event_id: str, month: date, realized_date: date
    ) -> None:
        ...

    async def unrealize_occurrence(self, event_id: str, month: date) -> None:
        ...

    async def delete_event(self, event_id: str) -> None:
        ...

    async def delete_transaction(self, transaction_id: str) -> None:
        ...

    async def list_events(
        self,
        ledger_id: str,
        unrealized_only: bool = True,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[ScheduledEvent]:
        """Events ordered by date."""
        ...

    async def list_ledgers(self) -> List[Ledger]:
        ...
