"""Conversation state models."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# Exchanges kept for the classifier; older ones are dropped on save
HISTORY_LIMIT = 2


class Exchange(BaseModel):
    """One user message and the bot's reply to it."""

    user: str
    assistant: str


class SelectionOption(BaseModel):
    """A resolved choice offered in a numbered list."""

    id: str
    label: str


class PendingSelection(BaseModel):
    """A numbered choice waiting for the user's answer (e.g. /setledger)."""

    kind: str  # "ledger"
    options: Dict[int, SelectionOption]

    def resolve(self, answer: str) -> Optional[SelectionOption]:
        """Return the option for a numeric answer, or None if invalid."""
        try:
            choice = int(answer.strip())
        except ValueError:
            return None
        return self.options.get(choice)


class ConversationContext(BaseModel):
    """Short-lived per-chat context: recent exchanges and any pending choice."""

    history: List[Exchange] = Field(default_factory=list)
    pending_selection: Optional[PendingSelection] = None
    updated_at: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.history and self.pending_selection is None

    def with_exchange(self, user: str, assistant: str) -> "ConversationContext":
        """Return a copy with the exchange appended, trimmed to HISTORY_LIMIT."""
        history = [*self.history, Exchange(user=user, assistant=assistant)]
        return self.model_copy(update={"history": history[-HISTORY_LIMIT:]})


class ActionKind(str, Enum):
    """Mutations that /undo knows how to compensate."""

    EVENT_CREATED = "event-created"
    TRANSACTION_RECORDED = "transaction-recorded"
    EVENT_MARKED_REALIZED = "event-marked-realized"


class PendingAction(BaseModel):
    """The single most recent mutating action of a chat."""

    kind: ActionKind
    target_id: str
    label: str
    # Event auto-matched by a recorded transaction
    correlated_id: Optional[str] = None
    # Occurrence month (YYYY-MM-01) touched by a realization, if recurring
    occurrence_month: Optional[str] = None
    created_at: float = 0.0
