"""Executor lookup by intent name."""

from typing import Optional

import structlog

from .base import IntentExecutor

logger = structlog.get_logger()


class ExecutorRegistry:
    """Registry of intent executors."""

    def __init__(self) -> None:
        self._executors: dict[str, IntentExecutor] = {}

    def register(self, executor: IntentExecutor) -> None:
        """Register an executor; a later one for the same intent replaces it."""
        self._executors[executor.intent] = executor
        logger.info("Executor registered", intent=executor.intent)

    def get(self, intent: str) -> Optional[IntentExecutor]:
        return self._executors.get(intent)

    def intents(self) -> list[str]:
        return list(self._executors)
