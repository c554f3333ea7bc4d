"""Discord OAuth backend routes (auth role)"""

import logging
import secrets
import time
from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from cofonita_web.core.cache import BotGuildCache
from cofonita_web.core.config import SERVICE_VERSION, Settings
from cofonita_web.core.dependencies import (
    get_app_settings,
    get_bot_guild_cache,
    get_discord_api,
    get_session,
    require_user,
)
from cofonita_web.core.session import Session
from cofonita_web.models import BotStats, User, guild_login_url
from cofonita_web.services import DiscordAPIClient, DiscordAPIError, build_user
from cofonita_web.services.renderer import templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["authentication"])

# Session key holding the pending OAuth ``state`` between redirect and callback
OAUTH_STATE_KEY = "oauth_state"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


# ============================================
# Pages
# ============================================


@router.get("/")
async def root(settings: Settings = Depends(get_app_settings)) -> dict:
    """Root endpoint - minimal service info"""
    return {
        "service": "Cofonita Auth Backend",
        "status": "running",
        "website": settings.frontend_url,
        "api": settings.api_url,
        "environment": settings.environment,
    }


@router.get("/login", response_model=None)
async def login_page(
    request: Request,
    error: str | None = None,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> HTMLResponse | RedirectResponse:
    if session.user is not None:
        logger.info("User already authenticated, redirecting to dashboard")
        return _redirect(f"{settings.frontend_url}/dashboard")

    return templates.TemplateResponse(
        request, "login.html", {"auth_url": "/auth/discord", "error": error}
    )


@router.get("/dashboard")
async def dashboard(
    user: User = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    logger.info(f"Sending {user.username} to the website dashboard")
    return _redirect(f"{settings.frontend_url}/dashboard")


# ============================================
# Discord OAuth
# ============================================


@router.get("/auth/discord")
async def start_discord_auth(
    session: Session = Depends(get_session),
    discord_api: DiscordAPIClient = Depends(get_discord_api),
) -> RedirectResponse:
    """Redirect to the Discord consent screen"""
    state = secrets.token_urlsafe(24)
    session.set(OAUTH_STATE_KEY, state)
    logger.info(f"Starting Discord OAuth2, callback: {discord_api.redirect_uri}")
    return _redirect(discord_api.authorize_url(state))


@router.get("/auth/discord/callback")
async def discord_oauth_callback(
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    discord_api: DiscordAPIClient = Depends(get_discord_api),
    bot_guilds: BotGuildCache = Depends(get_bot_guild_cache),
) -> RedirectResponse:
    """Handle Discord OAuth callback"""
    failure_redirect = f"{settings.frontend_url}/login?error=auth_failed"
    expected_state = session.pop(OAUTH_STATE_KEY)

    if error:
        logger.error(f"OAuth error from Discord: {error}")
        return _redirect(failure_redirect)

    if not code:
        logger.error("No OAuth code received from Discord")
        return _redirect(failure_redirect)

    if not (
        expected_state
        and state
        and secrets.compare_digest(state.encode(), expected_state.encode())
    ):
        logger.warning("OAuth state missing or mismatched")
        return _redirect(failure_redirect)

    try:
        token_data = await discord_api.exchange_code(code)
        access_token = token_data["access_token"]
        profile = await discord_api.get_current_user(access_token)
        guilds = await discord_api.get_current_user_guilds(access_token)
    except (DiscordAPIError, httpx.HTTPError) as e:
        logger.error(f"Discord login failed: {type(e).__name__}: {e}")
        return _redirect(failure_redirect)

    bot_guild_ids = await bot_guilds.guild_ids()
    user = build_user(
        profile,
        guilds,
        bot_guild_ids,
        settings.frontend_url,
        access_token=access_token,
        refresh_token=token_data.get("refresh_token"),
    )
    session.login(user)

    logger.info(
        f"Discord user logged in: {user.username} ({user.id}), "
        f"{len(user.guilds)} guilds, bot in {len(bot_guild_ids)}"
    )
    return _redirect(f"{settings.frontend_url}/dashboard")


@router.get("/logout")
async def logout(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    user = session.user
    session.destroy()
    logger.info(f"User logged out: {user.username if user else 'unknown'}")
    return _redirect(f"{settings.frontend_url}/login?success=logout")


# ============================================
# Stats
# ============================================


@router.get("/api/stats")
async def get_public_stats(
    request: Request,
    bot_guilds: BotGuildCache = Depends(get_bot_guild_cache),
) -> dict:
    """Public bot statistics from the last known guild list"""
    return {
        "success": True,
        "stats": {
            "serverCount": bot_guilds.size,
            "userCount": 0,
            "commandCount": 0,
            "uptime": time.time() - request.app.state.started_at,
            "version": SERVICE_VERSION,
        },
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/api/bot/stats")
async def get_bot_stats(
    user: User = Depends(require_user),
    bot_guilds: BotGuildCache = Depends(get_bot_guild_cache),
) -> dict:
    """Bot statistics for the authenticated user"""
    guilds = await bot_guilds.get_guilds()
    stats = BotStats(
        total_servers=len(guilds),
        manageable_servers=len(user.manageable_guilds),
    )
    logger.info(
        f"Stats for {user.username}: {stats.total_servers} servers, "
        f"{stats.manageable_servers} manageable"
    )
    return {"success": True, "stats": stats.to_json()}


# ============================================
# Guild login links
# ============================================


@router.post("/api/guild/{guild_id}/connect")
async def connect_guild(
    guild_id: str,
    user: User = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    guild = user.find_guild(guild_id)
    if guild is None:
        raise HTTPException(status_code=404, detail="Servidor no encontrado")

    if not guild.manageable:
        logger.info(f"{user.username} lacks permissions in guild {guild_id}")
        raise HTTPException(status_code=403, detail="No tienes permisos en este servidor")

    return {
        "success": True,
        "message": "Redirigiendo a inicio de sesión...",
        "login_url": guild_login_url(settings.frontend_url, guild_id),
    }


@router.get("/api/login/{guild_id}")
async def get_guild_login_url(
    guild_id: str,
    user: User = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    if user.find_guild(guild_id) is None:
        raise HTTPException(status_code=404, detail="Servidor no encontrado")

    login_url = guild_login_url(settings.frontend_url, guild_id)
    logger.info(f"Login link generated: {login_url}")
    return {"success": True, "login_url": login_url}


def _login_url(frontend_url: str, guild_id: str | None) -> str:
    if guild_id:
        return guild_login_url(frontend_url, guild_id)
    return f"{frontend_url}/login"


@router.get("/connect")
async def connect(
    guild_id: str | None = None,
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    return _redirect(_login_url(settings.frontend_url, guild_id))


@router.get("/api/login-url")
async def get_login_url(
    guild_id: str | None = None,
    settings: Settings = Depends(get_app_settings),
) -> dict:
    return {"success": True, "login_url": _login_url(settings.frontend_url, guild_id)}


AVAILABLE_ROUTES = ["/auth/discord", "/api/user", "/api/stats", "/health", "/login", "/logout"]
