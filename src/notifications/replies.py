"""Outbound replies to Telegram chats."""

import structlog
from telegram import Bot
from telegram.error import TelegramError

logger = structlog.get_logger()


class ReplySender:
    """Send one formatted message per inbound message."""

    def __init__(self, bot: Bot, parse_mode: str = "Markdown") -> None:
        self.bot = bot
        self.parse_mode = parse_mode

    async def send(self, chat_id: int, text: str) -> bool:
        """Send ``text``; delivery errors are logged, never raised."""
        if not chat_id:
            logger.warning("Reply skipped: no chat_id")
            return False
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=self.parse_mode,
            )
            return True
        except TelegramError as e:
            logger.error(
                "Failed to send reply",
                chat_id=chat_id,
                error=str(e),
            )
            return False
