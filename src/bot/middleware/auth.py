"""Webhook authentication and chat authorization.

The bot is a closed system: deliveries must carry the shared secret and come
from a chat listed in ``Settings.users``. Failures are logged and dropped
without any reply.
"""

import hmac
from typing import Mapping, Optional

import structlog

from ...config.settings import ChatIdentity

logger = structlog.get_logger()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_secret(received: Optional[str], expected: str) -> bool:
    """Constant-time comparison of the webhook secret header."""
    if not received or not expected:
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def authorize_chat(
    chat_id: int, users: Mapping[int, ChatIdentity]
) -> Optional[ChatIdentity]:
    """Return the chat's ledger identity, or None if not allow-listed."""
    identity = users.get(chat_id)
    if identity is None:
        logger.warning("Message from unknown chat ignored", chat_id=chat_id)
    return identity
