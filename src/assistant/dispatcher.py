"""Free-text dispatcher: drives one turn from text to ledger mutation.

received -> classified -> (needs-clarification | fields-missing | ready)
         -> executed -> (confirmed | failed)

A pending numbered selection (from /setledger) always takes precedence over
classification. Upstream failures never escape: they become a retry message
and leave all stored state untouched.
"""

from datetime import date
from typing import Callable, Optional

import structlog

from ..config.settings import ChatIdentity
from ..ledger.exceptions import LedgerRejectedError, LedgerUnavailableError
from ..ledger.gateway import LedgerGateway
from ..memory.manager import ActionLedger, ConversationMemory
from ..memory.models import ConversationContext, PendingSelection
from ..utils.formatting import escape_markdown
from .base import ExecutorResponse, TurnContext, TurnOutcome
from .intents import ClarifyIntent, UnknownIntent, missing_fields
from .parser import MessageParser
from .registry import ExecutorRegistry
from .resolvers import LedgerContextResolver

logger = structlog.get_logger()

RETRY_MESSAGE = (
    "Desculpe, tive um problema ao interpretar sua mensagem. Pode tentar de novo?"
)
LEDGER_UNAVAILABLE_MESSAGE = (
    "Erro ao acessar o orçamento. Nada foi alterado; tente novamente em instantes."
)
UNKNOWN_MESSAGE = (
    "Não entendi o que fazer com essa mensagem. "
    "Use /help para ver exemplos."
)

FIELD_LABELS = {
    "name": "nome",
    "description": "descrição",
    "amount": "valor",
    "event_date": "data",
    "date": "data",
    "direction": "tipo (entrada/saída)",
    "event_name": "nome do evento",
}


class IntentDispatcher:
    """Handle a free-text message for an authorized chat."""

    def __init__(
        self,
        parser: MessageParser,
        registry: ExecutorRegistry,
        gateway: LedgerGateway,
        memory: ConversationMemory,
        actions: ActionLedger,
        ledgers: LedgerContextResolver,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._parser = parser
        self._registry = registry
        self._gateway = gateway
        self._memory = memory
        self._actions = actions
        self._ledgers = ledgers
        self._today = today

    async def handle(self, chat_id: int, text: str, identity: ChatIdentity) -> str:
        context = await self._memory.load(chat_id)
        if context.pending_selection is not None:
            return await self._answer_selection(
                chat_id, text, context, context.pending_selection
            )

        result = await self._parser.parse(text, context.history, self._today())
        if result.is_error or result.payload is None:
            logger.error(
                "Classification failed", chat_id=chat_id, error=result.error_message
            )
            return RETRY_MESSAGE

        payload = result.payload
        if isinstance(payload, ClarifyIntent):
            await self._memory.save(
                chat_id, context.with_exchange(text, payload.question)
            )
            logger.info("Clarification requested", chat_id=chat_id)
            return payload.question

        if isinstance(payload, UnknownIntent):
            return UNKNOWN_MESSAGE

        missing = missing_fields(payload)
        if missing:
            # History is not extended: a rejected attempt must not steer
            # the next classification
            logger.info(
                "Required fields missing",
                chat_id=chat_id,
                intent=payload.intent,
                missing=missing,
            )
            label = FIELD_LABELS.get(missing[0], missing[0])
            return f"Não consegui identificar o *{label}*. Pode reformular a mensagem?"

        executor = self._registry.get(payload.intent)
        if executor is None:
            logger.error("No executor for intent", intent=payload.intent)
            return UNKNOWN_MESSAGE

        turn = TurnContext(
            chat_id=chat_id,
            text=text,
            ledger_id=await self._ledgers.resolve(chat_id, identity),
            today=self._today(),
            gateway=self._gateway.bind(identity.user_id),
        )
        try:
            response = await executor.execute(payload, turn)
        except LedgerRejectedError as exc:
            logger.info(
                "Ledger rejected intent",
                chat_id=chat_id,
                intent=payload.intent,
                error=str(exc),
            )
            return f"❌ {escape_markdown(str(exc))}"
        except LedgerUnavailableError as exc:
            logger.error(
                "Ledger unavailable",
                chat_id=chat_id,
                intent=payload.intent,
                error=str(exc),
            )
            return LEDGER_UNAVAILABLE_MESSAGE

        await self._finish_turn(chat_id, text, context, response)
        return response.content

    async def _finish_turn(
        self,
        chat_id: int,
        text: str,
        context: ConversationContext,
        response: ExecutorResponse,
    ) -> None:
        if response.outcome == TurnOutcome.CONFIRMED:
            await self._memory.clear(chat_id)
            if response.action is not None:
                await self._actions.record(chat_id, response.action)
        elif response.outcome == TurnOutcome.NEEDS_CLARIFICATION:
            await self._memory.save(
                chat_id, context.with_exchange(text, response.content)
            )

    async def _answer_selection(
        self,
        chat_id: int,
        text: str,
        context: ConversationContext,
        selection: PendingSelection,
    ) -> str:
        option = selection.resolve(text)
        if option is None:
            choices = ", ".join(str(n) for n in sorted(selection.options))
            return f"Opção inválida. Responda com um dos números: {choices}."

        reply: Optional[str] = None
        if selection.kind == "ledger":
            await self._ledgers.switch(chat_id, option.id)
            reply = f"✅ Orçamento ativo: *{escape_markdown(option.label)}*"
        else:
            logger.warning("Unknown selection kind", kind=selection.kind)

        await self._memory.clear(chat_id)
        logger.info(
            "Selection applied", chat_id=chat_id, kind=selection.kind, choice=option.id
        )
        return reply or "Seleção expirada. Tente o comando novamente."
