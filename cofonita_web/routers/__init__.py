"""API Routers package

Routers are organized by service role; ``api_router`` is shared.
"""

from . import api_router, auth_router, dashboard_router

__all__ = [
    "api_router",
    "auth_router",
    "dashboard_router",
]
