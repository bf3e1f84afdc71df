"""Ledger entities as seen by the bot.

The ledger engine owns these records; the bot only holds their ids.
Amounts are integers in minor currency units (centavos).
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Direction(str, Enum):
    INFLOW = "inflow"
    OUTFLOW = "outflow"


class Frequency(str, Enum):
    ONE_TIME = "one_time"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    SEMIANNUAL = "semiannual"


class Ledger(BaseModel):
    id: str
    name: str


class ScheduledEvent(BaseModel):
    """A projected (planned) income or expense."""

    id: str
    name: str
    amount: int
    event_date: date
    direction: Direction
    frequency: Frequency = Frequency.ONE_TIME
    recurrence_end_date: Optional[date] = None
    is_realized: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.frequency != Frequency.ONE_TIME

    def occurs_in(self, month: date) -> bool:
        """Whether the event has an occurrence in the month starting at ``month``."""
        month = month.replace(day=1)
        start = self.event_date.replace(day=1)
        if not self.is_recurring:
            return start == month
        if month < start:
            return False
        if self.recurrence_end_date and month > self.recurrence_end_date.replace(day=1):
            return False
        elapsed = (month.year - start.year) * 12 + (month.month - start.month)
        step = {
            Frequency.MONTHLY: 1,
            Frequency.SEMIANNUAL: 6,
            Frequency.ANNUAL: 12,
        }[self.frequency]
        return elapsed % step == 0


class NewEvent(BaseModel):
    """Parameters for creating a scheduled event."""

    name: str
    amount: int
    event_date: date
    direction: Direction
    frequency: Frequency = Frequency.ONE_TIME
    recurrence_end_date: Optional[date] = None


class NewTransaction(BaseModel):
    """Parameters for recording a realized transaction."""

    description: str
    amount: int
    direction: Direction
    transaction_date: date
    account_id: str


class AutoMatch(BaseModel):
    """Scheduled event the engine linked a new transaction to."""

    event_id: str
    event_name: str
    # First day of the realized occurrence's month, for recurring events
    occurrence_month: Optional[date] = None


class RecordedTransaction(BaseModel):
    id: str
    description: str
    amount: int
    direction: Direction
    transaction_date: date
    match: Optional[AutoMatch] = None
