"""FastAPI application factory"""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from cofonita_web.core.cache import BotGuildCache
from cofonita_web.core.config import DEFAULT_SESSION_SECRET, SERVICE_VERSION, Settings, get_settings
from cofonita_web.core.dependencies import LoginRequired
from cofonita_web.core.logging import setup_logging
from cofonita_web.core.session import MemorySessionStore, SessionMiddleware, SessionStore
from cofonita_web.routers import api_router, auth_router, dashboard_router
from cofonita_web.services import DiscordAPIClient, MainServerClient
from cofonita_web.services.renderer import render_page

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    settings: Settings = app.state.settings

    # Startup
    logger.info(f"Starting {settings.service_name} ({settings.role} role)")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")
    if settings.role == "auth":
        logger.info(f"Discord callback URL: {settings.redirect_url}")
        logger.info(f"Bot token: {'configured' if settings.discord_token else 'missing'}")
    else:
        logger.info(f"Main server: {settings.main_server_url}")
    if settings.is_production and settings.session_secret == DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET is using the default value")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.service_name}")
    try:
        await app.state.discord_api.close()
        await app.state.main_server.close()
    except Exception as e:
        logger.exception(f"Error during shutdown: {e}")


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> Response:
        return RedirectResponse(url=exc.location, status_code=302)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
        # No matched route: role-specific not-found page
        if exc.status_code == 404 and "endpoint" not in request.scope:
            logger.info(f"Route not found: {request.url.path}")
            if settings.role == "dashboard":
                page = render_page("not_found.html", path=request.url.path)
                return HTMLResponse(page, status_code=404)
            return JSONResponse(
                status_code=404,
                content={
                    "success": False,
                    "error": "Ruta no encontrada",
                    "path": request.url.path,
                    "available_routes": auth_router.AVAILABLE_ROUTES,
                },
            )

        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        if settings.role == "dashboard" and request.url.path == "/dashboard":
            return HTMLResponse(render_page("error.html"), status_code=500)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Error interno del servidor",
                "message": str(exc) if settings.is_development else "Algo fue mal, inténtalo más tarde",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )


def create_app(
    settings: Settings | None = None,
    *,
    discord_api: DiscordAPIClient | None = None,
    main_server: MainServerClient | None = None,
    sessions: SessionStore | None = None,
    bot_guilds: BotGuildCache | None = None,
) -> FastAPI:
    """Create and configure FastAPI application

    Collaborators default to production implementations built from
    *settings*; tests pass their own.
    """
    settings = settings or get_settings()

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title="Cofonita Web",
        description="Discord OAuth backend and dashboard for the Cofonita bot",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    if discord_api is None:
        discord_api = DiscordAPIClient(
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            redirect_uri=settings.redirect_url,
            bot_token=settings.discord_token,
            timeout=settings.discord_timeout,
        )
    if main_server is None:
        main_server = MainServerClient(
            settings.main_server_url,
            timeout=settings.main_server_timeout,
            stats_timeout=settings.stats_timeout,
        )
    if bot_guilds is None:
        bot_guilds = BotGuildCache(
            discord_api.get_bot_guilds if settings.discord_token else None,
            ttl=settings.bot_guilds_ttl,
        )
    if sessions is None:
        sessions = MemorySessionStore(ttl=settings.session_max_age)

    app.state.settings = settings
    app.state.discord_api = discord_api
    app.state.main_server = main_server
    app.state.bot_guilds = bot_guilds
    app.state.sessions = sessions
    app.state.started_at = time.time()

    app.add_middleware(
        SessionMiddleware,
        store=sessions,
        secret_key=settings.session_secret,
        cookie_name=settings.cookie_name,
        max_age=settings.session_max_age,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization"],
    )

    _register_exception_handlers(app, settings)

    # Register routers
    app.include_router(api_router.router)
    if settings.role == "auth":
        app.include_router(auth_router.router)
    else:
        app.include_router(dashboard_router.router)

    # Liveness probe, no upstream dependency
    @app.get("/health")
    async def health(request: Request) -> dict:
        """Health check with session state"""
        health_status = {
            "status": "ok" if settings.role == "auth" else "healthy",
            "service": settings.service_name,
            "version": SERVICE_VERSION,
            "authenticated": request.state.session.user is not None,
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": time.time() - app.state.started_at,
        }
        if settings.role == "auth":
            health_status["environment"] = settings.environment
            health_status["urls"] = {
                "website": settings.frontend_url,
                "api": settings.api_url,
                "redirect": settings.redirect_url,
            }
        return health_status

    logger.info("FastAPI application configured")

    return app
