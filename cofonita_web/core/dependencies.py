"""Dependency injection utilities for FastAPI"""

import logging
from datetime import UTC, datetime
from urllib.parse import quote

from fastapi import Depends, Request

from cofonita_web.core.cache import BotGuildCache
from cofonita_web.core.config import Settings
from cofonita_web.core.session import Session
from cofonita_web.models import User
from cofonita_web.services import DiscordAPIClient, MainServerClient

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """Raised by the auth gate; rendered as a redirect to the login page"""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


# ============================================
# Service Dependencies
# ============================================


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_session(request: Request) -> Session:
    session: Session = request.state.session
    return session


def get_bot_guild_cache(request: Request) -> BotGuildCache:
    cache: BotGuildCache = request.app.state.bot_guilds
    return cache


def get_discord_api(request: Request) -> DiscordAPIClient:
    client: DiscordAPIClient = request.app.state.discord_api
    return client


def get_main_server(request: Request) -> MainServerClient:
    client: MainServerClient = request.app.state.main_server
    return client


# ============================================
# Authentication Dependencies
# ============================================


def original_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url += f"?{request.url.query}"
    return url


async def require_user(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> User:
    """Return the session user, delegating to the main server when needed.

    The auth backend trusts only its own session. The dashboard falls back
    to the main server's ``/api/user`` once; a failed check sends the
    client to the login page with the requested path as ``redirect``.
    """
    user = session.user
    if user is not None:
        return user

    if settings.role == "auth":
        logger.info("User not authenticated, redirecting to login")
        raise LoginRequired(f"{settings.frontend_url}/login")

    main_server = get_main_server(request)
    user = await main_server.fetch_user(request.headers.get("cookie"))
    if user is not None:
        user.last_login = datetime.now(UTC).isoformat()
        session.login(user)
        logger.info(f"Session restored from main server for {user.username}")
        return user

    logger.info(f"Invalid session, redirecting {request.url.path} to login")
    redirect = quote(original_url(request), safe="")
    raise LoginRequired(f"{settings.frontend_url}/login?redirect={redirect}")
