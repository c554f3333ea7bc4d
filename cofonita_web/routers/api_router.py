"""User and guild API routes shared by both service roles"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from cofonita_web.core.dependencies import require_user
from cofonita_web.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["user"])


@router.get("/user")
async def get_current_user(user: User = Depends(require_user)) -> dict:
    """Get current authenticated user information"""
    logger.info(f"Serving user info: {user.username}")
    return {"success": True, "user": user.public_dict()}


@router.get("/guild/{guild_id}")
async def get_guild(guild_id: str, user: User = Depends(require_user)) -> dict:
    """Get one of the user's guilds with its derived flags"""
    guild = user.find_guild(guild_id)
    if guild is None:
        logger.info(f"Guild {guild_id} not found for {user.username}")
        raise HTTPException(status_code=404, detail="Servidor no encontrado")

    return {"success": True, "guild": guild.model_dump()}
