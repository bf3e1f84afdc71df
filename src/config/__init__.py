"""Configuration package."""

from .settings import ChatIdentity, Settings, get_settings

__all__ = [
    "ChatIdentity",
    "Settings",
    "get_settings",
]
