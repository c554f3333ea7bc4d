"""Data models shared by the auth backend and the dashboard renderer."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

DISCORD_CDN_URL = "https://cdn.discordapp.com"
DEFAULT_AVATAR_URL = f"{DISCORD_CDN_URL}/embed/avatars/0.png"

ADMINISTRATOR = 0x8

# Post-login landing page for guild login links
DASHBOARD_PATH = "/dashboard"

DEFAULT_UPTIME = 99.8


def is_manageable(permissions: int) -> bool:
    """A guild is manageable when the user holds the administrator bit."""
    return (permissions & ADMINISTRATOR) == ADMINISTRATOR


def avatar_url(user_id: str, avatar: str | None, discriminator: str | None) -> str:
    """Discord CDN avatar URL, falling back to the default embed avatar.

    The fallback index is ``discriminator % 5``; accounts migrated to the
    new username system report discriminator ``0`` and always get avatar 0.
    """
    if avatar:
        return f"{DISCORD_CDN_URL}/avatars/{user_id}/{avatar}.png?size=256"
    try:
        index = int(discriminator or 0) % 5
    except ValueError:
        index = 0
    return f"{DISCORD_CDN_URL}/embed/avatars/{index}.png"


def guild_login_url(frontend_url: str, guild_id: str) -> str:
    """Website login link that returns to the dashboard for a guild."""
    return (
        f"{frontend_url}/login?guild_id={quote(guild_id, safe='')}"
        f"&redirect={quote(DASHBOARD_PATH, safe='')}"
    )


class Guild(BaseModel):
    """Discord guild as returned by ``/users/@me/guilds``, plus derived flags."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str = ""
    icon: str | None = None
    owner: bool = False
    permissions: int = 0
    manageable: bool = False
    bot_installed: bool = False
    login_url: str | None = None
    approximate_member_count: int | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("permissions", mode="before")
    @classmethod
    def coerce_permissions(cls, v: Any) -> int:
        # Discord serialises permission bitfields as strings
        if v is None or v == "":
            return 0
        return int(v)

    @property
    def icon_url(self) -> str | None:
        if not self.icon:
            return None
        return f"{DISCORD_CDN_URL}/icons/{self.id}/{self.icon}.png?size=256"


class User(BaseModel):
    """Authenticated Discord user kept in the session."""

    model_config = ConfigDict(extra="ignore")

    id: str
    username: str = ""
    discriminator: str = "0"
    avatar: str | None = None
    avatar_url: str = DEFAULT_AVATAR_URL
    guilds: list[Guild] = Field(default_factory=list)
    access_token: str | None = None
    refresh_token: str | None = None
    last_login: str | None = None

    @field_validator("id", "discriminator", mode="before")
    @classmethod
    def coerce_str(cls, v: Any) -> str:
        return "0" if v is None else str(v)

    @property
    def manageable_guilds(self) -> list[Guild]:
        return [g for g in self.guilds if g.manageable]

    def find_guild(self, guild_id: str) -> Guild | None:
        return next((g for g in self.guilds if g.id == guild_id), None)

    def public_dict(self) -> dict[str, Any]:
        """User payload for API responses, without OAuth tokens."""
        return self.model_dump(
            include={"id", "username", "discriminator", "avatar", "avatar_url", "guilds"}
        )


class BotStats(BaseModel):
    """Bot statistics envelope shared with the main server."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total_servers: int = Field(default=0, alias="totalServers")
    manageable_servers: int = Field(default=0, alias="manageableServers")
    total_users: int = Field(default=0, alias="totalUsers")
    uptime: float = Field(default=DEFAULT_UPTIME)
    commands_used: int = Field(default=0, alias="commandsUsed")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
