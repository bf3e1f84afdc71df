"""Message orchestrator: single entry point for all Telegram updates.

Registers the fixed commands and the free-text handler on a
python-telegram-bot ``Application`` and sends exactly one reply per
authorized message. Every command except /undo clears the conversation
context, so a stale clarification loop never leaks into an unrelated
command. The pending undo action is left alone by commands; only /undo
consumes it.
"""

from typing import Awaitable, Callable, Optional, Tuple

import structlog
from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..assistant.dispatcher import RETRY_MESSAGE, IntentDispatcher
from ..config.settings import ChatIdentity, Settings
from ..memory.manager import ConversationMemory
from ..notifications.replies import ReplySender
from .handlers.commands import CommandHandlers
from .middleware.auth import authorize_chat

logger = structlog.get_logger()

CommandCallback = Callable[[int, ChatIdentity, str], Awaitable[str]]
PTBHandler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

UNKNOWN_COMMAND_MESSAGE = (
    "Comando não reconhecido. Use /help para ver os comandos disponíveis."
)

# Commands that must not touch the conversation context
_CONTEXT_PRESERVING = frozenset({"undo"})

# New messages only; edits and channel posts are ignored
_NEW_MESSAGES = filters.UpdateType.MESSAGE


class MessageOrchestrator:
    """Routes messages to commands or to the intent dispatcher."""

    def __init__(
        self,
        settings: Settings,
        dispatcher: IntentDispatcher,
        commands: CommandHandlers,
        memory: ConversationMemory,
        sender: ReplySender,
    ) -> None:
        self.settings = settings
        self.dispatcher = dispatcher
        self.commands = commands
        self.memory = memory
        self.sender = sender

    def register_handlers(self, app: Application) -> None:
        """Register the commands, the unknown-command fallback and free text."""
        handlers = [
            ("start", self.commands.start),
            ("help", self.commands.help),
            ("list", self.commands.list_events),
            ("undo", self.commands.undo),
            ("setledger", self.commands.set_ledger),
            ("ledger", self.commands.show_ledger),
        ]
        for cmd, handler in handlers:
            app.add_handler(
                CommandHandler(
                    cmd, self._command(cmd, handler), filters=_NEW_MESSAGES
                )
            )

        # Any other /command, including ones addressed to another bot
        app.add_handler(
            MessageHandler(_NEW_MESSAGES & filters.COMMAND, self.unknown_command)
        )

        app.add_handler(
            MessageHandler(
                _NEW_MESSAGES & filters.TEXT & ~filters.COMMAND, self.free_text
            ),
            group=10,
        )

        logger.info("Handlers registered", commands=len(handlers))

    def _authorize(self, update: Update) -> Optional[Tuple[int, ChatIdentity]]:
        chat = update.effective_chat
        if chat is None:
            return None
        identity = authorize_chat(chat.id, self.settings.users)
        if identity is None:
            return None
        return chat.id, identity

    async def _respond(
        self, chat_id: int, produce: Callable[[], Awaitable[str]]
    ) -> None:
        """Send the produced reply; unexpected errors become the retry message."""
        try:
            reply = await produce()
        except Exception:
            logger.exception(
                "Unhandled error while processing message", chat_id=chat_id
            )
            reply = RETRY_MESSAGE
        await self.sender.send(chat_id, reply)

    def _command(self, name: str, handler: CommandCallback) -> PTBHandler:
        """Wrap a command handler with authorization and context handling."""

        async def wrapped(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
            authorized = self._authorize(update)
            if authorized is None:
                return
            chat_id, identity = authorized
            args = " ".join(context.args or [])

            async def produce() -> str:
                if name not in _CONTEXT_PRESERVING:
                    await self.memory.clear(chat_id)
                logger.info("Command received", chat_id=chat_id, command=name)
                return await handler(chat_id, identity, args)

            await self._respond(chat_id, produce)

        wrapped.__name__ = f"{name}_command"
        return wrapped

    async def unknown_command(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        authorized = self._authorize(update)
        if authorized is None:
            return
        chat_id, _ = authorized

        async def produce() -> str:
            await self.memory.clear(chat_id)
            text = update.effective_message.text or ""
            logger.info("Unknown command", chat_id=chat_id, command=text.split()[0])
            return UNKNOWN_COMMAND_MESSAGE

        await self._respond(chat_id, produce)

    async def free_text(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Hand a plain text message to the intent dispatcher."""
        authorized = self._authorize(update)
        if authorized is None:
            return
        chat_id, identity = authorized
        text = (update.effective_message.text or "").strip()
        if not text:
            return

        async def produce() -> str:
            logger.info("Free-text message", chat_id=chat_id, length=len(text))
            return await self.dispatcher.handle(chat_id, text, identity)

        await self._respond(chat_id, produce)
