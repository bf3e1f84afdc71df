"""Outbound Telegram messaging."""

from .replies import ReplySender

__all__ = ["ReplySender"]
