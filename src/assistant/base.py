"""Shared types for intent executors."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional, Protocol, runtime_checkable

from ..ledger.gateway import LedgerGateway
from ..memory.models import PendingAction

UNDO_HINT = "Use /undo para desfazer."


class TurnOutcome(str, Enum):
    """How a free-text turn ended."""

    CONFIRMED = "confirmed"
    NEEDS_CLARIFICATION = "needs-clarification"
    REJECTED = "rejected"


@dataclass
class TurnContext:
    """Everything an executor needs for one message."""

    chat_id: int
    text: str
    ledger_id: str
    today: date
    gateway: LedgerGateway


@dataclass
class ExecutorResponse:
    """Result of running an intent."""

    content: str
    outcome: TurnOutcome = TurnOutcome.CONFIRMED
    action: Optional[PendingAction] = None


@runtime_checkable
class IntentExecutor(Protocol):
    """Executes one kind of intent against the ledger."""

    intent: str

    async def execute(self, payload: Any, turn: TurnContext) -> ExecutorResponse:
        """Run the intent. Ledger errors propagate to the dispatcher."""
        ...
