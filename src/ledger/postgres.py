"""Ledger gateway backed by the PostgreSQL ``api`` schema procedures."""

import math
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Optional

import psycopg
import structlog
from psycopg.rows import dict_row

from .exceptions import LedgerRejectedError, LedgerUnavailableError
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

logger = structlog.get_logger()


def _event_from_row(row: Dict[str, Any]) -> ScheduledEvent:
    return ScheduledEvent(
        id=str(row["uuid"]),
        name=row["name"],
        amount=abs(int(row["amount"])),
        event_date=row["event_date"],
        direction=Direction(row["direction"]),
        frequency=Frequency(row.get("frequency") or Frequency.ONE_TIME.value),
        recurrence_end_date=row.get("recurrence_end_date"),
        is_realized=bool(row.get("is_realized", False)),
    )


class PostgresLedgerGateway:
    """Calls the ledger engine with a short-lived connection per operation.

    Each connection sets ``app.current_user_id`` before doing anything so
    row-level security scopes every query to the bound user.
    """

    def __init__(
        self,
        dsn: str,
        timeout_seconds: float = 5.0,
        user_id: Optional[str] = None,
    ) -> None:
        self._dsn = dsn
        self._timeout = timeout_seconds
        self._user_id = user_id

    def bind(self, user_id: str) -> "PostgresLedgerGateway":
        return PostgresLedgerGateway(self._dsn, self._timeout, user_id)

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        if not self._user_id:
            raise LedgerUnavailableError("Ledger gateway used without a bound user")
        try:
            conn = await psycopg.AsyncConnection.connect(
                self._dsn,
                connect_timeout=max(1, math.ceil(self._timeout)),
                options=f"-c statement_timeout={int(self._timeout * 1000)}",
                row_factory=dict_row,
            )
        except psycopg.Error as exc:
            logger.error("Ledger connection failed", error=str(exc))
            raise LedgerUnavailableError(str(exc)) from exc

        try:
            async with conn:
                await conn.execute(
                    "SELECT set_config('app.current_user_id', %s, false)",
                    (self._user_id,),
                )
                yield conn
        except (psycopg.errors.RaiseException, psycopg.errors.NoDataFound) as exc:
            message = exc.diag.message_primary or str(exc)
            logger.info("Ledger rejected operation", error=message)
            raise LedgerRejectedError(message) from exc
        except psycopg.errors.QueryCanceled as exc:
            logger.error("Ledger statement timed out", error=str(exc))
            raise LedgerUnavailableError("ledger timeout") from exc
        except psycopg.Error as exc:
            logger.error("Ledger call failed", error=str(exc))
            raise LedgerUnavailableError(str(exc)) from exc

    async def create_event(self, ledger_id: str, event: NewEvent) -> ScheduledEvent:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM api.create_projected_event(
                    p_ledger_uuid         := %s,
                    p_name                := %s,
                    p_amount              := %s::bigint,
                    p_event_date          := %s::date,
                    p_direction           := %s,
                    p_frequency           := %s,
                    p_recurrence_end_date := %s::date
                )
                """,
                (
                    ledger_id,
                    event.name,
                    event.amount,
                    event.event_date,
                    event.direction.value,
                    event.frequency.value,
                    event.recurrence_end_date,
                ),
            )
            row = await cursor.fetchone()
        if not row:
            raise LedgerUnavailableError("api.create_projected_event returned no rows")
        created = dict(row)
        created.setdefault("amount", event.amount)
        created.setdefault("event_date", event.event_date)
        created.setdefault("direction", event.direction.value)
        created.setdefault("frequency", event.frequency.value)
        created.setdefault("recurrence_end_date", event.recurrence_end_date)
        return _event_from_row(created)

    async def record_transaction(
        self, ledger_id: str, transaction: NewTransaction
    ) -> RecordedTransaction:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT api.add_transaction(
                    %s, %s::date, %s, %s, %s::bigint, %s, NULL
                ) AS transaction_uuid
                """,
                (
                    ledger_id,
                    transaction.transaction_date,
                    transaction.description,
                    transaction.direction.value,
                    transaction.amount,
                    transaction.account_id,
                ),
            )
            row = await cursor.fetchone()
            if not row or not row["transaction_uuid"]:
                raise LedgerUnavailableError("api.add_transaction returned no id")
            transaction_id = str(row["transaction_uuid"])
            match = await self._find_match(conn, transaction_id)

        return RecordedTransaction(
            id=transaction_id,
            description=transaction.description,
            amount=transaction.amount,
            direction=transaction.direction,
            transaction_date=transaction.transaction_date,
            match=match,
        )

    async def _find_match(
        self, conn: psycopg.AsyncConnection, transaction_id: str
    ) -> Optional[AutoMatch]:
        """Read back the event the engine linked the transaction to, if any."""
        cursor = await conn.execute(
            """
            SELECT uuid, name FROM api.projected_events
            WHERE linked_transaction_uuid = %s
            LIMIT 1
            """,
            (transaction_id,),
        )
        row = await cursor.fetchone()
        if row:
            return AutoMatch(event_id=str(row["uuid"]), event_name=row["name"])

        cursor = await conn.execute(
            """
            SELECT o.event_uuid, o.scheduled_month, e.name
            FROM api.projected_event_occurrences o
            JOIN api.projected_events e ON e.uuid = o.event_uuid
            WHERE o.transaction_uuid = %s
            LIMIT 1
            """,
            (transaction_id,),
        )
        row = await cursor.fetchone()
        if row:
            return AutoMatch(
                event_id=str(row["event_uuid"]),
                event_name=row["name"],
                occurrence_month=row["scheduled_month"],
            )
        return None

    async def get_event(self, event_id: str) -> ScheduledEvent:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM api.get_projected_event(%s)", (event_id,)
            )
            row = await cursor.fetchone()
        if not row:
            raise LedgerRejectedError("Evento não encontrado.")
        return _event_from_row(row)

    async def _set_realized(self, event_id: str, realized: bool) -> None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM api.update_projected_event(
                    p_event_uuid  := %s,
                    p_is_realized := %s::boolean
                )
                """,
                (event_id, realized),
            )
            row = await cursor.fetchone()
        if not row:
            raise LedgerRejectedError("Evento não encontrado.")

    async def realize_event(self, event_id: str) -> None:
        await self._set_realized(event_id, True)

    async def unrealize_event(self, event_id: str) -> None:
        await self._set_realized(event_id, False)

    async def realize_occurrence(
        self, event_id: str, month: date, realized_date: date
    ) -> None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM api.realize_projected_event_occurrence(
                    p_event_uuid      := %s,
                    p_scheduled_month := %s::date,
                    p_realized_date   := %s::date
                )
                """,
                (event_id, month.replace(day=1), realized_date),
            )
            row = await cursor.fetchone()
        if not row:
            raise LedgerRejectedError("Ocorrência não encontrada.")

    async def unrealize_occurrence(self, event_id: str, month: date) -> None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                """
                SELECT api.unrealize_projected_event_occurrence(
                    p_event_uuid      := %s,
                    p_scheduled_month := %s::date
                ) AS ok
                """,
                (event_id, month.replace(day=1)),
            )
            row = await cursor.fetchone()
        if not row or not row["ok"]:
            raise LedgerRejectedError("Ocorrência não estava realizada.")

    async def delete_event(self, event_id: str) -> None:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT api.delete_projected_event(%s) AS deleted", (event_id,)
            )
            row = await cursor.fetchone()
        if not row or not row["deleted"]:
            raise LedgerRejectedError("Evento não encontrado.")

    async def delete_transaction(self, transaction_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute(
                "SELECT api.delete_transaction(%s)", (transaction_id,)
            )

    async def list_events(
        self,
        ledger_id: str,
        unrealized_only: bool = True,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[ScheduledEvent]:
        clauses = ["ledger_uuid = %s"]
        params: List[Any] = [ledger_id]
        if unrealized_only:
            clauses.append("is_realized = false")
        if start is not None:
            clauses.append("event_date >= %s::date")
            params.append(start)
        if end is not None:
            clauses.append("event_date <= %s::date")
            params.append(end)
        query = (
            "SELECT uuid, name, amount, event_date, direction, frequency,"
            " recurrence_end_date, is_realized"
            " FROM api.projected_events"
            f" WHERE {' AND '.join(clauses)}"
            " ORDER BY event_date"
        )
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        async with self._connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return [_event_from_row(row) for row in rows]

    async def list_ledgers(self) -> List[Ledger]:
        async with self._connection() as conn:
            cursor = await conn.execute(
                "SELECT uuid, name FROM api.ledgers ORDER BY name"
            )
            rows = await cursor.fetchall()
        return [Ledger(id=str(row["uuid"]), name=row["name"]) for row in rows]
