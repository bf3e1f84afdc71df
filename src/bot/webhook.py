"""FastAPI application receiving Telegram webhook deliveries.

The route always answers 200 ``{"ok": true}`` so Telegram never retries a
delivery; the actual work runs as a background task after the response.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Dict, Optional
from zoneinfo import ZoneInfo

import structlog
from fastapi import BackgroundTasks, FastAPI, Header, Request
from telegram import Bot, Update
from telegram.ext import Application

from ..assistant.dispatcher import IntentDispatcher
from ..assistant.executors import (
    MarkRealizedExecutor,
    NewEventExecutor,
    RecordTransactionExecutor,
)
from ..assistant.parser import MessageParser
from ..assistant.registry import ExecutorRegistry
from ..assistant.resolvers import AccountResolver, LedgerContextResolver
from ..assistant.undo import UndoService
from ..config.settings import Settings, get_settings
from ..ledger.postgres import PostgresLedgerGateway
from ..llm.chat_provider import ChatProvider
from ..memory.manager import ActionLedger, ConversationMemory, LedgerSelection
from ..notifications.replies import ReplySender
from ..storage.database import DatabaseManager
from ..storage.kv_store import SqliteKeyValueStore
from ..utils.log_setup import configure_logging
from .handlers.commands import CommandHandlers
from .middleware.auth import SECRET_HEADER, verify_secret
from .orchestrator import MessageOrchestrator

logger = structlog.get_logger()


def build_orchestrator(
    settings: Settings,
    db_manager: DatabaseManager,
    bot: Bot,
) -> MessageOrchestrator:
    """Wire the production object graph."""
    tz = ZoneInfo(settings.timezone)

    def today() -> date:
        return datetime.now(tz).date()

    store = SqliteKeyValueStore(db_manager)
    memory = ConversationMemory(store)
    actions = ActionLedger(store)
    ledgers = LedgerContextResolver(LedgerSelection(store))
    gateway = PostgresLedgerGateway(
        settings.database_url, timeout_seconds=settings.ledger_timeout_seconds
    )

    registry = ExecutorRegistry()
    registry.register(NewEventExecutor())
    registry.register(
        RecordTransactionExecutor(
            AccountResolver(settings.accounts, settings.default_account_id)
        )
    )
    registry.register(MarkRealizedExecutor())

    parser = MessageParser(
        ChatProvider(
            model=settings.llm_model,
            api_key=settings.llm_api_key_str,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout_seconds,
        ),
        locale=settings.locale,
        max_tokens=settings.llm_max_tokens,
    )
    dispatcher = IntentDispatcher(
        parser=parser,
        registry=registry,
        gateway=gateway,
        memory=memory,
        actions=actions,
        ledgers=ledgers,
        today=today,
    )
    commands = CommandHandlers(
        gateway=gateway,
        memory=memory,
        ledgers=ledgers,
        undo_service=UndoService(actions),
        today=today,
    )
    return MessageOrchestrator(
        settings=settings,
        dispatcher=dispatcher,
        commands=commands,
        memory=memory,
        sender=ReplySender(bot),
    )


def create_app(
    settings: Optional[Settings] = None,
    application: Optional[Application] = None,
) -> FastAPI:
    """Create the webhook app.

    Configuration is loaded and validated here, so a missing required
    setting aborts startup instead of failing per request. Passing an
    ``application`` skips building the production object graph.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.application is not None:
            yield
            return

        configure_logging(settings.log_level, settings.log_json)
        db_manager = DatabaseManager(f"sqlite:///{settings.state_db_path}")
        await db_manager.initialize()

        # Webhook mode: updates arrive through the route, no polling updater
        ptb_app = (
            Application.builder()
            .token(settings.telegram_bot_token_str)
            .updater(None)
            .build()
        )
        orchestrator = build_orchestrator(settings, db_manager, ptb_app.bot)
        orchestrator.register_handlers(ptb_app)
        await ptb_app.initialize()
        app.state.application = ptb_app
        logger.info(
            "Webhook ready", path=settings.webhook_path, users=len(settings.users)
        )
        try:
            yield
        finally:
            await ptb_app.shutdown()
            await db_manager.close()

    app = FastAPI(title="Budget Telegram Bot", lifespan=lifespan)
    app.state.settings = settings
    app.state.application = application

    @app.post(settings.webhook_path)
    async def telegram_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        secret_token: Optional[str] = Header(None, alias=SECRET_HEADER),
    ) -> Dict[str, Any]:
        if not verify_secret(secret_token, settings.webhook_secret_str):
            logger.warning("Webhook secret mismatch; delivery dropped")
            return {"ok": True}

        try:
            data = await request.json()
        except ValueError:
            logger.warning("Webhook body is not JSON; delivery dropped")
            return {"ok": True}
        if not isinstance(data, dict):
            return {"ok": True}

        application = request.app.state.application
        try:
            update = Update.de_json(data, application.bot)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Malformed update; delivery dropped", error=str(e))
            return {"ok": True}
        if update is None:
            return {"ok": True}

        background_tasks.add_task(application.process_update, update)
        return {"ok": True}

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    return app
