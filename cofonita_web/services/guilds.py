"""Guild enrichment run once at authentication time"""

from collections.abc import Collection, Iterable, Mapping
from typing import Any

from cofonita_web.models import Guild, User, avatar_url, guild_login_url, is_manageable


def enrich_guilds(
    guilds: Iterable[Mapping[str, Any] | Guild],
    bot_guild_ids: Collection[str],
    frontend_url: str,
) -> list[Guild]:
    """Attach ``manageable``, ``bot_installed`` and ``login_url`` to each guild"""
    enriched = []
    for raw in guilds:
        guild = raw if isinstance(raw, Guild) else Guild.model_validate(raw)
        enriched.append(
            guild.model_copy(
                update={
                    "manageable": is_manageable(guild.permissions),
                    "bot_installed": guild.id in bot_guild_ids,
                    "login_url": guild_login_url(frontend_url, guild.id),
                }
            )
        )
    return enriched


def build_user(
    profile: Mapping[str, Any],
    guilds: Iterable[Mapping[str, Any]],
    bot_guild_ids: Collection[str],
    frontend_url: str,
    access_token: str | None = None,
    refresh_token: str | None = None,
) -> User:
    """Build the session user from a Discord profile and its guild list"""
    user_id = str(profile["id"])
    discriminator = str(profile.get("discriminator") or "0")
    return User(
        id=user_id,
        username=profile.get("username") or "",
        discriminator=discriminator,
        avatar=profile.get("avatar"),
        avatar_url=avatar_url(user_id, profile.get("avatar"), discriminator),
        guilds=enrich_guilds(guilds, bot_guild_ids, frontend_url),
        access_token=access_token,
        refresh_token=refresh_token,
    )
