"""record_transaction: book a movement that already happened."""

import structlog

from ...ledger.models import NewTransaction
from ...memory.models import ActionKind, PendingAction
from ...utils.formatting import (
    escape_markdown,
    format_date,
    format_direction,
    format_money,
    format_month,
)
from ..base import UNDO_HINT, ExecutorResponse, TurnContext, TurnOutcome
from ..intents import RecordTransactionIntent, to_minor_units
from ..resolvers import AccountResolver

logger = structlog.get_logger()

ACCOUNT_QUESTION = (
    "Em qual conta foi essa movimentação? "
    "Mencione o banco ou cartão (ex.: \"no nubank\")."
)


class RecordTransactionExecutor:
    """Record a transaction and report the scheduled event it matched, if any."""

    intent: str = "record_transaction"

    def __init__(self, account_resolver: AccountResolver) -> None:
        self._accounts = account_resolver

    async def execute(
        self, payload: RecordTransactionIntent, turn: TurnContext
    ) -> ExecutorResponse:
        account_id = self._accounts.resolve(payload.account_hint)
        if account_id is None:
            logger.info(
                "No account for transaction",
                chat_id=turn.chat_id,
                hint=payload.account_hint,
            )
            return ExecutorResponse(
                content=ACCOUNT_QUESTION,
                outcome=TurnOutcome.NEEDS_CLARIFICATION,
            )

        recorded = await turn.gateway.record_transaction(
            turn.ledger_id,
            NewTransaction(
                description=payload.description.strip(),
                amount=to_minor_units(payload.amount),
                direction=payload.direction,
                transaction_date=payload.date,
                account_id=account_id,
            ),
        )
        match = recorded.match
        logger.info(
            "Transaction recorded",
            chat_id=turn.chat_id,
            transaction_id=recorded.id,
            matched_event=match.event_id if match else None,
        )

        lines = [
            f"✅ *Transação registrada:* {escape_markdown(recorded.description)}",
            f"{format_money(recorded.amount)} · {format_direction(recorded.direction)}"
            f" · {format_date(recorded.transaction_date)}",
        ]
        occurrence_month = None
        if match:
            occurrence_month = (
                match.occurrence_month or recorded.transaction_date.replace(day=1)
            )
            lines.append(
                f"🔗 Vinculada ao evento previsto *{escape_markdown(match.event_name)}*"
                f" ({format_month(occurrence_month)}), marcado como realizado."
            )
        else:
            lines.append("Nenhum evento previsto correspondente.")
        lines.append("")
        lines.append(UNDO_HINT)

        return ExecutorResponse(
            content="\n".join(lines),
            action=PendingAction(
                kind=ActionKind.TRANSACTION_RECORDED,
                target_id=recorded.id,
                label=f"transação \"{recorded.description}\"",
                correlated_id=match.event_id if match else None,
                occurrence_month=(
                    occurrence_month.isoformat() if occurrence_month else None
                ),
            ),
        )
