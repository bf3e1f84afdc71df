"""SQLite connection management for bot state."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite
import structlog

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL
)
"""


class DatabaseManager:
    """Owns the SQLite file that backs conversation state."""

    def __init__(self, database_url: str) -> None:
        self.database_path = self._parse_url(database_url)
        self._connection: Optional[aiosqlite.Connection] = None

    @staticmethod
    def _parse_url(database_url: str) -> Path:
        if database_url.startswith("sqlite:///"):
            return Path(database_url[len("sqlite:///"):])
        return Path(database_url)

    async def initialize(self) -> None:
        """Open the database and apply the schema."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self.database_path)
        self._connection.row_factory = aiosqlite.Row
        await self._connection.execute(SCHEMA)
        await self._connection.commit()
        logger.info("State database initialized", path=str(self.database_path))

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        if self._connection is None:
            raise RuntimeError("DatabaseManager is not initialized")
        yield self._connection

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
