"""Dashboard renderer routes (dashboard role)"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from cofonita_web.core.config import Settings
from cofonita_web.core.dependencies import (
    get_app_settings,
    get_main_server,
    get_session,
    require_user,
)
from cofonita_web.core.session import Session
from cofonita_web.models import User
from cofonita_web.services import MainServerClient, resolve_stats
from cofonita_web.services.renderer import (
    build_dashboard_view,
    default_stats,
    load_template,
    render_dashboard,
    render_page,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    user: User = Depends(require_user),
    settings: Settings = Depends(get_app_settings),
    main_server: MainServerClient = Depends(get_main_server),
) -> HTMLResponse:
    """Render the dashboard page for the authenticated user"""
    try:
        stats = await resolve_stats(main_server, request.headers.get("cookie"), default_stats(user))
        view = build_dashboard_view(user, stats)
        html = render_dashboard(view, load_template(settings.dashboard_template))
    except Exception as e:
        logger.exception(f"Error rendering dashboard: {e}")
        return HTMLResponse(render_page("error.html"), status_code=500)

    logger.info(f"Dashboard rendered for {user.username} ({len(view.guilds)} manageable guilds)")
    return HTMLResponse(html)


@router.get("/api/bot/stats")
async def get_bot_stats(
    request: Request,
    user: User = Depends(require_user),
    main_server: MainServerClient = Depends(get_main_server),
) -> dict:
    """Main server statistics, with local defaults when it is unreachable"""
    stats = await resolve_stats(main_server, request.headers.get("cookie"), default_stats(user))
    return {"success": True, "stats": stats.to_json()}


@router.post("/api/guild/{guild_id}/connect")
async def connect_guild(
    guild_id: str,
    request: Request,
    user: User = Depends(require_user),
    main_server: MainServerClient = Depends(get_main_server),
) -> dict:
    """Ask the main server for a guild login link"""
    guild = user.find_guild(guild_id)
    if guild is None or not guild.manageable:
        raise HTTPException(status_code=403, detail="No tienes permisos en este servidor")

    login_url = await main_server.fetch_login_url(guild_id, request.headers.get("cookie"))
    if not login_url:
        logger.error(f"Main server did not return a login link for guild {guild_id}")
        raise HTTPException(status_code=500, detail="Error obteniendo enlace de conexión")

    return {"success": True, "login_url": login_url}


@router.get("/api/dashboard/enhanced")
async def get_enhanced_data(user: User = Depends(require_user)) -> dict:
    """Extended dashboard payload; analytics are not collected yet"""
    return {
        "success": True,
        "user": {
            **user.public_dict(),
            "last_login": user.last_login,
            "enhanced": {
                "join_date": datetime.now(UTC).isoformat(),
                "activity_score": 0,
                "server_rank": 0,
                "badges": [],
            },
        },
        "stats": {
            "enhanced": {
                "daily_growth": 0,
                "peak_hours": [],
                "popular_commands": [],
                "response_time": 0,
            }
        },
        "analytics": {
            "realtime": {
                "active_users": 0,
                "commands_per_minute": 0,
                "server_load": 0,
            }
        },
    }


@router.get("/logout")
async def logout(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Drop the local session and finish the logout on the main server"""
    session.destroy()
    return RedirectResponse(url=f"{settings.main_server_url}/logout", status_code=302)
