"""Core modules for the Cofonita web services."""

from .cache import BotGuildCache
from .config import Settings, get_settings
from .logging import setup_logging
from .session import MemorySessionStore, Session, SessionMiddleware, SessionStore

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Logging
    "setup_logging",
    # Caching
    "BotGuildCache",
    # Sessions
    "MemorySessionStore",
    "Session",
    "SessionMiddleware",
    "SessionStore",
]
