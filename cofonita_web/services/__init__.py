"""Services layer - Business logic

Services are created once per application in ``create_app`` and reached
from route handlers through dependency injection.
"""

from .discord_api import DiscordAPIClient, DiscordAPIError
from .guilds import build_user, enrich_guilds
from .main_server import MainServerClient, resolve_stats

__all__ = [
    "DiscordAPIClient",
    "DiscordAPIError",
    "MainServerClient",
    "build_user",
    "enrich_guilds",
    "resolve_stats",
]
