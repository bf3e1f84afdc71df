"""mark_realized: confirm that a planned event happened.

Events are matched by case-insensitive substring of their name, optionally
restricted to a month. Only the first ``MAX_CANDIDATES`` matches (in ledger
order) are considered and the earliest-dated one among them is realized.
"""

from datetime import date
from typing import Optional, Sequence

import structlog

from ...ledger.models import ScheduledEvent
from ...memory.models import ActionKind, PendingAction
from ...utils.formatting import (
    escape_markdown,
    format_date,
    format_direction,
    format_money,
    format_month,
)
from ..base import UNDO_HINT, ExecutorResponse, TurnContext, TurnOutcome
from ..intents import MarkRealizedIntent

logger = structlog.get_logger()

MAX_CANDIDATES = 3


def find_candidates(
    events: Sequence[ScheduledEvent],
    fragment: str,
    month: Optional[date] = None,
    current_month: Optional[date] = None,
    limit: int = MAX_CANDIDATES,
) -> list[ScheduledEvent]:
    """Unrealized events whose name contains ``fragment``, at most ``limit``.

    With an explicit ``month`` every event must occur in it. Without one,
    recurring events must occur in ``current_month``, the month that would
    be realized for them.
    """
    needle = fragment.strip().lower()
    matches = [
        event
        for event in events
        if not event.is_realized
        and needle in event.name.lower()
        and _in_scope(event, month, current_month)
    ]
    return matches[:limit]


def _in_scope(
    event: ScheduledEvent, month: Optional[date], current_month: Optional[date]
) -> bool:
    if month is not None:
        return event.occurs_in(month)
    if event.is_recurring and current_month is not None:
        return event.occurs_in(current_month)
    return True


def pick_earliest(candidates: Sequence[ScheduledEvent]) -> ScheduledEvent:
    """Earliest event date wins; ties keep ledger order."""
    return min(candidates, key=lambda event: event.event_date)


class MarkRealizedExecutor:
    """Realize a scheduled event, or one occurrence of a recurring one."""

    intent: str = "mark_realized"

    async def execute(
        self, payload: MarkRealizedIntent, turn: TurnContext
    ) -> ExecutorResponse:
        events = await turn.gateway.list_events(turn.ledger_id, unrealized_only=True)
        candidates = find_candidates(
            events, payload.event_name, payload.month, current_month=turn.today
        )
        if not candidates:
            scope = f" em {format_month(payload.month)}" if payload.month else ""
            return ExecutorResponse(
                content=(
                    "Não encontrei evento previsto pendente com o nome "
                    f"\"{escape_markdown(payload.event_name)}\"{scope}."
                ),
                outcome=TurnOutcome.REJECTED,
            )

        event = pick_earliest(candidates)
        occurrence_month = None
        if event.is_recurring:
            occurrence_month = (payload.month or turn.today).replace(day=1)
            await turn.gateway.realize_occurrence(
                event.id, occurrence_month, turn.today
            )
            when = format_month(occurrence_month)
        else:
            await turn.gateway.realize_event(event.id)
            when = format_date(event.event_date)

        logger.info(
            "Event marked realized",
            chat_id=turn.chat_id,
            event_id=event.id,
            candidates=len(candidates),
        )

        lines = [
            f"✅ *Marcado como realizado:* {escape_markdown(event.name)}",
            f"{format_money(event.amount)} · {format_direction(event.direction)}"
            f" · {when}",
        ]
        if len(candidates) > 1:
            lines.append(
                f"ℹ️ Encontrei {len(candidates)} eventos parecidos; "
                f"escolhi o de data mais antiga ({format_date(event.event_date)})."
            )
        lines.append("")
        lines.append(UNDO_HINT)

        return ExecutorResponse(
            content="\n".join(lines),
            action=PendingAction(
                kind=ActionKind.EVENT_MARKED_REALIZED,
                target_id=event.id,
                label=f"realização de \"{event.name}\"",
                occurrence_month=(
                    occurrence_month.isoformat() if occurrence_month else None
                ),
            ),
        )
