"""Test PostgresLedgerGateway against a mocked psycopg connection."""

from datetime import date
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg
import pytest

from src.ledger.exceptions import LedgerRejectedError, LedgerUnavailableError
from src.ledger.models import Direction, Frequency, NewEvent, NewTransaction
from src.ledger.postgres import PostgresLedgerGateway


class FakeConnection:
    """Async connection double; each execute() pops the next result rows."""

    def __init__(self, results=None, error: Optional[Exception] = None) -> None:
        self.results = list(results or [])
        self.error = error
        self.queries: list[tuple[str, tuple]] = []

    async def __aenter__(self) -> "FakeConnection":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def execute(self, query, params=None):
        self.queries.append((query, params))
        if "set_config" in query:
            return MagicMock()
        if self.error is not None:
            raise self.error
        rows = self.results.pop(0) if self.results else []
        cursor = MagicMock()
        cursor.fetchone = AsyncMock(return_value=rows[0] if rows else None)
        cursor.fetchall = AsyncMock(return_value=rows)
        return cursor


@pytest.fixture
def connect():
    with patch(
        "src.ledger.postgres.psycopg.AsyncConnection.connect", new_callable=AsyncMock
    ) as connect:
        yield connect


def _gateway() -> PostgresLedgerGateway:
    return PostgresLedgerGateway("postgresql://db/ledger", 5.0).bind("alice")


class TestConnection:
    async def test_unbound_gateway_refuses(self, connect) -> None:
        """Test that a gateway without a bound user never connects."""
        gateway = PostgresLedgerGateway("postgresql://db/ledger")
        with pytest.raises(LedgerUnavailableError):
            await gateway.list_ledgers()
        connect.assert_not_called()

    async def test_sets_user_and_timeout(self, connect) -> None:
        """Test that each connection sets the statement timeout and the RLS user."""
        conn = FakeConnection(results=[[{"uuid": "L1", "name": "Casa"}]])
        connect.return_value = conn

        ledgers = await _gateway().list_ledgers()

        assert [ledger.name for ledger in ledgers] == ["Casa"]
        kwargs = connect.call_args[1]
        assert kwargs["options"] == "-c statement_timeout=5000"
        assert kwargs["connect_timeout"] == 5
        query, params = conn.queries[0]
        assert "app.current_user_id" in query
        assert params == ("alice",)

    async def test_connect_failure_is_unavailable(self, connect) -> None:
        """Test that a connection error maps to LedgerUnavailableError."""
        connect.side_effect = psycopg.OperationalError("refused")
        with pytest.raises(LedgerUnavailableError):
            await _gateway().list_ledgers()

    async def test_raise_exception_is_rejection(self, connect) -> None:
        """Test that a RAISE from a procedure maps to LedgerRejectedError."""
        connect.return_value = FakeConnection(
            error=psycopg.errors.RaiseException("Valor deve ser positivo")
        )
        with pytest.raises(LedgerRejectedError, match="Valor deve ser positivo"):
            await _gateway().delete_event("evt-1")

    async def test_timeout_is_unavailable(self, connect) -> None:
        """Test that a cancelled statement is reported as a ledger timeout."""
        connect.return_value = FakeConnection(
            error=psycopg.errors.QueryCanceled("canceling statement")
        )
        with pytest.raises(LedgerUnavailableError, match="ledger timeout"):
            await _gateway().delete_event("evt-1")


class TestOperations:
    async def test_create_event(self, connect) -> None:
        """Test that create_event calls the procedure and returns the created row."""
        conn = FakeConnection(
            results=[[{"uuid": "evt-9", "name": "IPTU", "is_realized": False}]]
        )
        connect.return_value = conn

        event = await _gateway().create_event(
            "ledger-1",
            NewEvent(
                name="IPTU",
                amount=120000,
                event_date=date(2024, 7, 1),
                direction=Direction.OUTFLOW,
                frequency=Frequency.ANNUAL,
            ),
        )

        assert event.id == "evt-9"
        assert event.amount == 120000
        assert event.frequency == Frequency.ANNUAL
        query, params = conn.queries[1]
        assert "api.create_projected_event" in query
        assert params[0] == "ledger-1"
        assert params[4:6] == ("outflow", "annual")

    async def test_record_transaction_with_occurrence_match(self, connect) -> None:
        """Test that an auto-matched recurring occurrence is read back."""
        conn = FakeConnection(
            results=[
                [{"transaction_uuid": "txn-1"}],
                [],
                [
                    {
                        "event_uuid": "evt-2",
                        "scheduled_month": date(2024, 3, 1),
                        "name": "Luz",
                    }
                ],
            ]
        )
        connect.return_value = conn

        recorded = await _gateway().record_transaction(
            "ledger-1",
            NewTransaction(
                description="Luz",
                amount=12000,
                direction=Direction.OUTFLOW,
                transaction_date=date(2024, 3, 14),
                account_id="acc-1",
            ),
        )

        assert recorded.id == "txn-1"
        assert recorded.match.event_id == "evt-2"
        assert recorded.match.occurrence_month == date(2024, 3, 1)

    async def test_record_transaction_without_match(self, connect) -> None:
        """Test that a transaction with no auto-match reports none."""
        connect.return_value = FakeConnection(
            results=[[{"transaction_uuid": "txn-1"}], [], []]
        )

        recorded = await _gateway().record_transaction(
            "ledger-1",
            NewTransaction(
                description="Mercado",
                amount=8000,
                direction=Direction.OUTFLOW,
                transaction_date=date(2024, 3, 14),
                account_id="acc-1",
            ),
        )

        assert recorded.match is None

    async def test_get_event_missing(self, connect) -> None:
        """Test that an unknown event id is rejected."""
        connect.return_value = FakeConnection(results=[[]])
        with pytest.raises(LedgerRejectedError):
            await _gateway().get_event("evt-404")

    async def test_unrealize_occurrence_not_realized(self, connect) -> None:
        """Test that unrealizing a month that is not realized is rejected."""
        connect.return_value = FakeConnection(results=[[{"ok": False}]])
        with pytest.raises(LedgerRejectedError):
            await _gateway().unrealize_occurrence("evt-1", date(2024, 3, 20))

    async def test_list_events_filters(self, connect) -> None:
        """Test that list_events filters by window and limit and normalizes amounts."""
        conn = FakeConnection(
            results=[
                [
                    {
                        "uuid": "evt-1",
                        "name": "Aluguel",
                        "amount": -150000,
                        "event_date": date(2024, 3, 20),
                        "direction": "outflow",
                        "frequency": "monthly",
                        "recurrence_end_date": None,
                        "is_realized": False,
                    }
                ]
            ]
        )
        connect.return_value = conn

        events = await _gateway().list_events(
            "ledger-1", start=date(2024, 3, 15), end=date(2024, 4, 14), limit=10
        )

        assert events[0].amount == 150000
        query, params = conn.queries[1]
        assert "is_realized = false" in query
        assert query.endswith("LIMIT %s")
        assert params == ["ledger-1", date(2024, 3, 15), date(2024, 4, 14), 10]
