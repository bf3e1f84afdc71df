"""Free-text assistant: classification, intent executors and undo."""

from .base import ExecutorResponse, IntentExecutor, TurnContext, TurnOutcome
from .dispatcher import IntentDispatcher
from .parser import MessageParser, ParseResult
from .registry import ExecutorRegistry
from .resolvers import AccountResolver, LedgerContextResolver
from .undo import UndoService

__all__ = [
    "AccountResolver",
    "ExecutorRegistry",
    "ExecutorResponse",
    "IntentDispatcher",
    "IntentExecutor",
    "LedgerContextResolver",
    "MessageParser",
    "ParseResult",
    "TurnContext",
    "TurnOutcome",
    "UndoService",
]
