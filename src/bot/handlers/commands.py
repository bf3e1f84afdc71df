"""Handlers for the fixed slash commands."""

from datetime import date, timedelta
from typing import Callable

import structlog

from ...assistant.resolvers import LedgerContextResolver
from ...assistant.undo import UndoService
from ...config.settings import ChatIdentity
from ...ledger.exceptions import LedgerError
from ...ledger.gateway import LedgerGateway
from ...memory.manager import ConversationMemory
from ...memory.models import ConversationContext, PendingSelection, SelectionOption
from ...utils.formatting import (
    direction_icon,
    escape_markdown,
    format_date,
    format_money,
)

logger = structlog.get_logger()

LIST_WINDOW_DAYS = 30
LIST_LIMIT = 10

START_MESSAGE = (
    "*Olá! Sou o assistente do seu orçamento.* 💰\n\n"
    "Mande uma mensagem em texto livre para planejar um evento, registrar "
    "uma transação ou confirmar algo previsto.\n\n"
    "*Exemplos:*\n"
    "• conta de luz 180 reais dia 10 de março\n"
    "• salário 5000 dia 5 todo mês\n"
    "• paguei Netflix 55,90 no nubank\n"
    "• pago conta de luz de março\n\n"
    "Use /help para mais informações."
)

HELP_MESSAGE = (
    "*Comandos:*\n"
    "/list — próximos eventos (30 dias)\n"
    "/undo — desfaz a última ação (até 1 hora)\n"
    "/setledger — escolhe o orçamento ativo\n"
    "/ledger — mostra o orçamento ativo\n"
    "/help — esta mensagem\n\n"
    "*Planejar evento:*\n"
    "• IPTU 1200 anual em julho\n"
    "• aluguel recebido 2500 dia 1 todo mês até dezembro\n\n"
    "*Registrar transação:*\n"
    "• comprei no nubank 150 mercado\n"
    "• recebi aluguel 2000 hoje\n\n"
    "*Confirmar evento previsto:*\n"
    "• salário caiu\n"
    "• pago conta de luz de março"
)


class CommandHandlers:
    """Implementations of /start, /help, /list, /undo, /setledger and /ledger."""

    def __init__(
        self,
        gateway: LedgerGateway,
        memory: ConversationMemory,
        ledgers: LedgerContextResolver,
        undo_service: UndoService,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._gateway = gateway
        self._memory = memory
        self._ledgers = ledgers
        self._undo = undo_service
        self._today = today

    async def start(self, chat_id: int, identity: ChatIdentity, args: str) -> str:
        return START_MESSAGE

    async def help(self, chat_id: int, identity: ChatIdentity, args: str) -> str:
        return HELP_MESSAGE

    async def list_events(
        self, chat_id: int, identity: ChatIdentity, args: str
    ) -> str:
        """Upcoming unrealized events of the active ledger."""
        today = self._today()
        ledger_id = await self._ledgers.resolve(chat_id, identity)
        try:
            events = await self._gateway.bind(identity.user_id).list_events(
                ledger_id,
                unrealized_only=True,
                start=today,
                end=today + timedelta(days=LIST_WINDOW_DAYS),
                limit=LIST_LIMIT,
            )
        except LedgerError as e:
            logger.error("Listing events failed", chat_id=chat_id, error=str(e))
            return "Erro ao buscar eventos. Tente novamente."

        if not events:
            return f"Nenhum evento nos próximos {LIST_WINDOW_DAYS} dias."

        lines = [f"*Próximos eventos ({LIST_WINDOW_DAYS} dias):*\n"]
        for event in events:
            lines.append(
                f"{direction_icon(event.direction)} {format_date(event.event_date)}"
                f" — {escape_markdown(event.name)} ({format_money(event.amount)})"
            )
        return "\n".join(lines)

    async def undo(self, chat_id: int, identity: ChatIdentity, args: str) -> str:
        return await self._undo.undo(chat_id, self._gateway.bind(identity.user_id))

    async def set_ledger(
        self, chat_id: int, identity: ChatIdentity, args: str
    ) -> str:
        """Offer the available ledgers as a numbered list.

        The answer is consumed by the dispatcher's pending-selection check.
        """
        try:
            ledgers = await self._gateway.bind(identity.user_id).list_ledgers()
        except LedgerError as e:
            logger.error("Listing ledgers failed", chat_id=chat_id, error=str(e))
            return "Erro ao buscar orçamentos. Tente novamente."

        if not ledgers:
            return "Nenhum orçamento encontrado."

        active = await self._ledgers.resolve(chat_id, identity)
        options = {
            number: SelectionOption(id=ledger.id, label=ledger.name)
            for number, ledger in enumerate(ledgers, start=1)
        }
        await self._memory.save(
            chat_id,
            ConversationContext(
                pending_selection=PendingSelection(kind="ledger", options=options)
            ),
        )

        lines = ["*Escolha o orçamento:*\n"]
        for number, option in options.items():
            marker = " ✅" if option.id == active else ""
            lines.append(f"{number}. {escape_markdown(option.label)}{marker}")
        lines.append("\nResponda com o número.")
        return "\n".join(lines)

    async def show_ledger(
        self, chat_id: int, identity: ChatIdentity, args: str
    ) -> str:
        active = await self._ledgers.resolve(chat_id, identity)
        try:
            ledgers = await self._gateway.bind(identity.user_id).list_ledgers()
        except LedgerError as e:
            logger.error("Listing ledgers failed", chat_id=chat_id, error=str(e))
            ledgers = []
        name = next((ledger.name for ledger in ledgers if ledger.id == active), active)
        return f"Orçamento ativo: *{escape_markdown(name)}*\nUse /setledger para trocar."
