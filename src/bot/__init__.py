"""Telegram-facing layer: webhook, routing, commands."""
