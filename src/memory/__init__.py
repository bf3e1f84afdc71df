"""Per-conversation state: context, pending undo action, ledger override."""

from .manager import ActionLedger, ConversationMemory, LedgerSelection
from .models import (
    ActionKind,
    ConversationContext,
    Exchange,
    PendingAction,
    PendingSelection,
    SelectionOption,
)

__all__ = [
    "ActionKind",
    "ActionLedger",
    "ConversationContext",
    "ConversationMemory",
    "Exchange",
    "LedgerSelection",
    "PendingAction",
    "PendingSelection",
    "SelectionOption",
]
