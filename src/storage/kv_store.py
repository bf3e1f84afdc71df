"""Keyed state storage with optional expiry.

All per-conversation state goes through ``KeyValueStore`` so that the
dispatcher holds no mutable state of its own. Expiry is lazy: an entry whose
TTL has elapsed is reported as absent on read and removed at that point.
Concurrent writers to the same key are not serialized; the last write wins.
"""

import json
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import structlog

from .database import DatabaseManager

logger = structlog.get_logger()

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """Get/set/delete JSON-compatible dicts by key."""

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    async def set(
        self, key: str, value: Dict[str, Any], ttl: Optional[float] = None
    ) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store, used in tests and single-process development."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and self._clock() > expires_at:
            del self._data[key]
            return None
        return json.loads(raw)

    async def set(
        self, key: str, value: Dict[str, Any], ttl: Optional[float] = None
    ) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        # Serialize so callers never share mutable state with the store
        self._data[key] = (json.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteKeyValueStore:
    """Store backed by the ``kv_state`` table."""

    def __init__(self, db_manager: DatabaseManager, clock: Clock = time.time) -> None:
        self.db = db_manager
        self._clock = clock

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        async with self.db.get_connection() as conn:
            cursor = await conn.execute(
                "SELECT value, expires_at FROM kv_state WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            if row["expires_at"] is not None and self._clock() > row["expires_at"]:
                await conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
                await conn.commit()
                return None
            return json.loads(row["value"])

    async def set(
        self, key: str, value: Dict[str, Any], ttl: Optional[float] = None
    ) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        async with self.db.get_connection() as conn:
            await conn.execute(
                """INSERT INTO kv_state (key, value, expires_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at""",
                (key, json.dumps(value), expires_at),
            )
            await conn.commit()

    async def delete(self, key: str) -> None:
        async with self.db.get_connection() as conn:
            await conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))
            await conn.commit()
