"""Per-conversation state on top of a KeyValueStore.

Three independent slots are kept per chat id:

- conversation context (history + pending selection), 10 minute TTL
- pending action for /undo, single slot, 1 hour TTL
- ledger override chosen with /setledger, no expiry

Expiry is evaluated at read time against the record's own timestamp, so a
store without native TTL support still behaves correctly.
"""

import time
from typing import Callable, Optional

import structlog
from pydantic import ValidationError

from ..storage.kv_store import KeyValueStore
from .models import HISTORY_LIMIT, ConversationContext, PendingAction

logger = structlog.get_logger()

CONTEXT_TTL_SECONDS = 10 * 60
ACTION_TTL_SECONDS = 60 * 60


class ConversationMemory:
    """Conversation context store."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl: float = CONTEXT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    @staticmethod
    def _key(chat_id: int) -> str:
        return f"ctx:{chat_id}"

    async def load(self, chat_id: int) -> ConversationContext:
        """Return the live context, or an empty one if absent or expired."""
        raw = await self._store.get(self._key(chat_id))
        if raw is None:
            return ConversationContext()
        try:
            context = ConversationContext.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable context", chat_id=chat_id, error=str(exc))
            return ConversationContext()
        if self._clock() - context.updated_at > self._ttl:
            return ConversationContext()
        return context

    async def save(self, chat_id: int, context: ConversationContext) -> None:
        context = context.model_copy(
            update={
                "history": context.history[-HISTORY_LIMIT:],
                "updated_at": self._clock(),
            }
        )
        await self._store.set(
            self._key(chat_id), context.model_dump(mode="json"), ttl=self._ttl
        )

    async def clear(self, chat_id: int) -> None:
        await self._store.delete(self._key(chat_id))


class ActionLedger:
    """Single-slot record of the last mutating action, consumed by /undo."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl: float = ACTION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._clock = clock

    @staticmethod
    def _key(chat_id: int) -> str:
        return f"action:{chat_id}"

    async def record(self, chat_id: int, action: PendingAction) -> None:
        """Replace whatever action was pending for this chat."""
        action = action.model_copy(update={"created_at": self._clock()})
        await self._store.set(
            self._key(chat_id), action.model_dump(mode="json"), ttl=self._ttl
        )
        logger.debug("Pending action recorded", chat_id=chat_id, kind=action.kind.value)

    async def peek(self, chat_id: int) -> Optional[PendingAction]:
        """Return the pending action if it exists and has not expired."""
        raw = await self._store.get(self._key(chat_id))
        if raw is None:
            return None
        try:
            action = PendingAction.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable action", chat_id=chat_id, error=str(exc))
            return None
        if self._clock() - action.created_at > self._ttl:
            return None
        return action

    async def clear(self, chat_id: int) -> None:
        await self._store.delete(self._key(chat_id))


class LedgerSelection:
    """Ledger override per chat, kept until changed."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @staticmethod
    def _key(chat_id: int) -> str:
        return f"ledger:{chat_id}"

    async def get(self, chat_id: int) -> Optional[str]:
        raw = await self._store.get(self._key(chat_id))
        if not raw:
            return None
        return raw.get("ledger_id") or None

    async def set(self, chat_id: int, ledger_id: str) -> None:
        await self._store.set(self._key(chat_id), {"ledger_id": ledger_id})
