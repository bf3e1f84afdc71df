"""Telegram assistant for a double-entry personal budget."""

__version__ = "0.1.0"
