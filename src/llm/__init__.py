"""Chat-completion provider used by the intent parser."""

from .chat_provider import ChatProvider, ChatResponse

__all__ = ["ChatProvider", "ChatResponse"]
