"""In-process TTL cache with stale fallback for the bot's guild list.

Uses cachetools.TTLCache for the fresh tier. When the Discord API is
unreachable, reads fall back to the last-known-good list so callers never
see the failure.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

_KEY = "bot_guilds"

GuildFetcher = Callable[[], Awaitable[list[dict[str, Any]]]]


class BotGuildCache:
    """Memo of the bot's guild list, refreshed at most once per *ttl* seconds.

    Two tiers:
      1. ``_cache`` (TTLCache) -- fresh list, governed by *ttl*.
      2. ``_stale`` -- last-known-good list that survives TTL expiry. Returned
         when a refresh fails.

    There is no lock: concurrent callers inside the same stale window may
    each trigger an upstream request.
    """

    def __init__(
        self,
        fetch: GuildFetcher | None,
        ttl: float = 300.0,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=ttl, timer=timer)
        self._stale: list[dict[str, Any]] = []
        self.last_update: float | None = None
        self._timer = timer

    @property
    def enabled(self) -> bool:
        return self._fetch is not None

    async def get_guilds(self) -> list[dict[str, Any]]:
        """Return the bot's guilds, refreshing when the cached list expired."""
        if self._fetch is None:
            logger.warning("DISCORD_TOKEN not configured, cannot fetch bot guilds")
            return []

        fresh = self._cache.get(_KEY)
        if fresh is not None:
            logger.debug("Using cached bot guilds")
            return fresh

        logger.info("Refreshing bot guilds from Discord API")
        try:
            guilds = await self._fetch()
        except Exception as e:
            logger.error(f"Failed to fetch bot guilds: {type(e).__name__}: {e}")
            return self._stale

        self._cache[_KEY] = guilds
        self._stale = guilds
        self.last_update = self._timer()
        logger.info(f"Fetched {len(guilds)} bot guilds")
        return guilds

    async def guild_ids(self) -> set[str]:
        return {str(g.get("id")) for g in await self.get_guilds()}

    @property
    def size(self) -> int:
        return len(self._stale)
