"""Compensation of the last mutating action (/undo)."""

from datetime import date
from typing import Optional

import structlog

from ..ledger.exceptions import LedgerError, LedgerRejectedError
from ..ledger.gateway import LedgerGateway
from ..memory.manager import ActionLedger
from ..memory.models import ActionKind, PendingAction
from ..utils.formatting import escape_markdown

logger = structlog.get_logger()

NOTHING_TO_UNDO = "Nada para desfazer (a última ação expira após 1 hora)."


def _month(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


class UndoService:
    """Reverse the chat's pending action, including matched-event cascades."""

    def __init__(self, actions: ActionLedger) -> None:
        self._actions = actions

    async def undo(self, chat_id: int, gateway: LedgerGateway) -> str:
        action = await self._actions.peek(chat_id)
        if action is None:
            return NOTHING_TO_UNDO

        label = escape_markdown(action.label)
        try:
            await self._reverse_primary(action, gateway)
        except LedgerError as exc:
            logger.warning(
                "Undo failed",
                chat_id=chat_id,
                kind=action.kind.value,
                target_id=action.target_id,
                error=str(exc),
            )
            reason = (
                str(exc)
                if isinstance(exc, LedgerRejectedError)
                else "erro ao acessar o orçamento"
            )
            return f"❌ Não foi possível desfazer {label}: {escape_markdown(reason)}"

        # The primary effect is gone; the slot must not be replayed
        await self._actions.clear(chat_id)
        logger.info(
            "Action undone",
            chat_id=chat_id,
            kind=action.kind.value,
            target_id=action.target_id,
        )

        if action.kind == ActionKind.TRANSACTION_RECORDED and action.correlated_id:
            try:
                await self._reopen_event(
                    gateway, action.correlated_id, _month(action.occurrence_month)
                )
            except LedgerError as exc:
                logger.warning(
                    "Cascade unrealize failed",
                    chat_id=chat_id,
                    event_id=action.correlated_id,
                    error=str(exc),
                )
                return (
                    f"↩️ Desfeito: {label}.\n"
                    "⚠️ Não consegui reabrir o evento previsto vinculado; "
                    "verifique-o no painel."
                )
            return (
                f"↩️ Desfeito: {label}.\n"
                "O evento previsto vinculado voltou a ficar pendente."
            )

        return f"↩️ Desfeito: {label}."

    async def _reverse_primary(
        self, action: PendingAction, gateway: LedgerGateway
    ) -> None:
        if action.kind == ActionKind.EVENT_CREATED:
            await gateway.delete_event(action.target_id)
        elif action.kind == ActionKind.TRANSACTION_RECORDED:
            await gateway.delete_transaction(action.target_id)
        elif action.kind == ActionKind.EVENT_MARKED_REALIZED:
            month = _month(action.occurrence_month)
            if month is not None:
                await gateway.unrealize_occurrence(action.target_id, month)
            else:
                await gateway.unrealize_event(action.target_id)

    @staticmethod
    async def _reopen_event(
        gateway: LedgerGateway, event_id: str, month: Optional[date]
    ) -> None:
        """Inverse of the engine's auto-realization of a matched event.

        One-time events carry the realized flag themselves; recurring events
        only had the one occurrence realized, so only that one is reverted.
        """
        event = await gateway.get_event(event_id)
        if event.is_recurring:
            if month is None:
                raise LedgerRejectedError("occurrence month unknown")
            await gateway.unrealize_occurrence(event.id, month)
        else:
            await gateway.unrealize_event(event.id)
