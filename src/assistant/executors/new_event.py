"""new_event: add a planned income/expense to the projection."""

import structlog

from ...ledger.models import Frequency, NewEvent
from ...memory.models import ActionKind, PendingAction
from ...utils.formatting import (
    escape_markdown,
    format_date,
    format_direction,
    format_frequency,
    format_money,
)
from ..base import UNDO_HINT, ExecutorResponse, TurnContext
from ..intents import NewEventIntent, to_minor_units

logger = structlog.get_logger()


class NewEventExecutor:
    """Create a scheduled event in the active ledger."""

    intent: str = "new_event"

    async def execute(
        self, payload: NewEventIntent, turn: TurnContext
    ) -> ExecutorResponse:
        frequency = payload.frequency or Frequency.ONE_TIME
        event = NewEvent(
            name=payload.name.strip(),
            amount=to_minor_units(payload.amount),
            event_date=payload.event_date,
            direction=payload.direction,
            frequency=frequency,
            recurrence_end_date=(
                payload.recurrence_end_date
                if frequency != Frequency.ONE_TIME
                else None
            ),
        )

        created = await turn.gateway.create_event(turn.ledger_id, event)
        logger.info(
            "Scheduled event created",
            chat_id=turn.chat_id,
            event_id=created.id,
            frequency=created.frequency.value,
        )

        details = (
            f"{format_money(created.amount)} · {format_direction(created.direction)}"
            f" · {format_date(created.event_date)}"
            f" · {format_frequency(created.frequency)}"
        )
        if created.recurrence_end_date:
            details += f" (até {format_date(created.recurrence_end_date)})"

        content = (
            f"✅ *Evento criado:* {escape_markdown(created.name)}\n"
            f"{details}\n\n{UNDO_HINT}"
        )
        return ExecutorResponse(
            content=content,
            action=PendingAction(
                kind=ActionKind.EVENT_CREATED,
                target_id=created.id,
                label=f"evento \"{created.name}\"",
            ),
        )
