"""Persistence for per-conversation bot state."""

from .database import DatabaseManager
from .kv_store import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore

__all__ = [
    "DatabaseManager",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
]
