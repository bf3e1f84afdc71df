"""Shared test fixtures: in-memory ledger, controllable clock, settings."""

import itertools
from datetime import date
from typing import Dict, List, Optional, Set, Tuple

import pytest

from src.config.settings import ChatIdentity, Settings
from src.ledger.exceptions import LedgerRejectedError
from src.ledger.models import (
    AutoMatch,
    Ledger,
    NewEvent,
    NewTransaction,
    RecordedTransaction,
    ScheduledEvent,
)
from src.memory.manager import ActionLedger, ConversationMemory, LedgerSelection
from src.storage.kv_store import MemoryKeyValueStore

CHAT_ID = 1001
TODAY = date(2024, 3, 15)


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryLedgerGateway:
    """Ledger engine double with the same observable behavior as the real one."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.events: Dict[str, ScheduledEvent] = {}
        self.transactions: Dict[str, RecordedTransaction] = {}
        self.realized_occurrences: Set[Tuple[str, date]] = set()
        self.ledgers: List[Ledger] = []
        self.calls: List[str] = []
        self.bound_user: Optional[str] = None
        # Event the next recorded transaction will be auto-matched to
        self.next_match: Optional[AutoMatch] = None
        self.fail_with: Optional[Exception] = None

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_with is not None:
            raise self.fail_with

    def bind(self, user_id: str) -> "InMemoryLedgerGateway":
        self.bound_user = user_id
        return self

    def add_event(self, **fields) -> ScheduledEvent:
        event_id = fields.pop("id", None) or f"evt-{next(self._ids)}"
        event = ScheduledEvent(id=event_id, **fields)
        self.events[event.id] = event
        return event

    def _require_event(self, event_id: str) -> ScheduledEvent:
        if event_id not in self.events:
            raise LedgerRejectedError("Evento não encontrado.")
        return self.events[event_id]

    async def create_event(self, ledger_id: str, event: NewEvent) -> ScheduledEvent:
        self._call("create_event")
        return self.add_event(**event.model_dump())

    async def record_transaction(
        self, ledger_id: str, transaction: NewTransaction
    ) -> RecordedTransaction:
        self._call("record_transaction")
        match = self.next_match
        self.next_match = None
        recorded = RecordedTransaction(
            id=f"txn-{next(self._ids)}",
            description=transaction.description,
            amount=transaction.amount,
            direction=transaction.direction,
            transaction_date=transaction.transaction_date,
            match=match,
        )
        self.transactions[recorded.id] = recorded
        if match is not None:
            event = self._require_event(match.event_id)
            if event.is_recurring:
                self.realized_occurrences.add(
                    (
                        event.id,
                        match.occurrence_month
                        or recorded.transaction_date.replace(day=1),
                    )
                )
            else:
                self.events[event.id] = event.model_copy(update={"is_realized": True})
        return recorded

    async def get_event(self, event_id: str) -> ScheduledEvent:
        self._call("get_event")
        return self._require_event(event_id)

    async def realize_event(self, event_id: str) -> None:
        self._call("realize_event")
        event = self._require_event(event_id)
        self.events[event_id] = event.model_copy(update={"is_realized": True})

    async def unrealize_event(self, event_id: str) -> None:
        self._call("unrealize_event")
        event = self._require_event(event_id)
        self.events[event_id] = event.model_copy(update={"is_realized": False})

    async def realize_occurrence(
        self, event_id: str, month: date, realized_date: date
    ) -> None:
        self._call("realize_occurrence")
        self._require_event(event_id)
        self.realized_occurrences.add((event_id, month.replace(day=1)))

    async def unrealize_occurrence(self, event_id: str, month: date) -> None:
        self._call("unrealize_occurrence")
        key = (event_id, month.replace(day=1))
        if key not in self.realized_occurrences:
            raise LedgerRejectedError("Ocorrência não estava realizada.")
        self.realized_occurrences.discard(key)

    async def delete_event(self, event_id: str) -> None:
        self._call("delete_event")
        self._require_event(event_id)
        del self.events[event_id]

    async def delete_transaction(self, transaction_id: str) -> None:
        self._call("delete_transaction")
        if transaction_id not in self.transactions:
            raise LedgerRejectedError("Transação não encontrada.")
        del self.transactions[transaction_id]

    async def list_events(
        self,
        ledger_id: str,
        unrealized_only: bool = True,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[ScheduledEvent]:
        self._call("list_events")
        events = [
            e
            for e in self.events.values()
            if (not unrealized_only or not e.is_realized)
            and (start is None or e.event_date >= start)
            and (end is None or e.event_date <= end)
        ]
        events.sort(key=lambda e: e.event_date)
        return events[:limit] if limit is not None else events

    async def list_ledgers(self) -> List[Ledger]:
        self._call("list_ledgers")
        return list(self.ledgers)

    @property
    def mutations(self) -> List[str]:
        readonly = {"get_event", "list_events", "list_ledgers"}
        return [c for c in self.calls if c not in readonly]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def memory(store, clock) -> ConversationMemory:
    return ConversationMemory(store, clock=clock)


@pytest.fixture
def actions(store, clock) -> ActionLedger:
    return ActionLedger(store, clock=clock)


@pytest.fixture
def selection(store) -> LedgerSelection:
    return LedgerSelection(store)


@pytest.fixture
def gateway() -> InMemoryLedgerGateway:
    return InMemoryLedgerGateway()


@pytest.fixture
def identity() -> ChatIdentity:
    return ChatIdentity(user_id="alice", ledger_id="ledger-default")


@pytest.fixture
def settings(identity) -> Settings:
    return Settings(
        _env_file=None,
        telegram_bot_token="123:abc",
        webhook_secret="s3cret-token",
        llm_api_key="sk-test",
        database_url="postgresql://localhost/budget",
        users={CHAT_ID: identity},
        accounts={"nubank": "acc-nubank", "inter": "acc-inter"},
        default_account_id="acc-default",
    )
