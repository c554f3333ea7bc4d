"""Client for the main server consulted by the dashboard renderer"""

import logging
from typing import Any

import httpx

from cofonita_web.models import BotStats, User

logger = logging.getLogger(__name__)

USER_AGENT = "Dashboard-Server"


class MainServerClient:
    """Cookie-forwarding client for the auth backend's JSON API.

    Every call returns ``None`` on timeout, network error, non-JSON reply or
    a ``{success: false}`` envelope. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        stats_timeout: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.stats_timeout = stats_timeout
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    async def _get_envelope(
        self, path: str, cookie: str | None, timeout: float | None = None
    ) -> dict[str, Any] | None:
        try:
            response = await self._http.get(
                f"{self.base_url}{path}",
                headers={"Cookie": cookie or "", "User-Agent": USER_AGENT},
                timeout=timeout or self.timeout,
                follow_redirects=False,
            )
            if response.status_code != 200:
                logger.warning(f"Main server {path} returned {response.status_code}")
                return None

            data = response.json()

        except httpx.TimeoutException:
            logger.warning(f"Main server {path} timed out")
            return None

        except httpx.HTTPError as e:
            logger.warning(f"Cannot reach main server {path}: {type(e).__name__}: {e}")
            return None

        except ValueError:
            logger.warning(f"Main server {path} returned a non-JSON body")
            return None

        if not isinstance(data, dict) or not data.get("success"):
            logger.debug(f"Main server {path} reported failure: {data}")
            return None
        return data

    async def fetch_user(self, cookie: str | None) -> User | None:
        """Validate the forwarded cookie against ``/api/user``"""
        data = await self._get_envelope("/api/user", cookie)
        if not data or not data.get("user"):
            return None
        try:
            return User.model_validate(data["user"])
        except ValueError as e:
            logger.warning(f"Main server returned an invalid user: {e}")
            return None

    async def fetch_stats(self, cookie: str | None) -> dict[str, Any] | None:
        data = await self._get_envelope("/api/bot/stats", cookie, timeout=self.stats_timeout)
        if not data or not isinstance(data.get("stats"), dict):
            return None
        stats: dict[str, Any] = data["stats"]
        return stats

    async def fetch_login_url(self, guild_id: str, cookie: str | None) -> str | None:
        data = await self._get_envelope(f"/api/login/{guild_id}", cookie)
        if not data:
            return None
        login_url = data.get("login_url")
        return str(login_url) if login_url else None


async def resolve_stats(
    client: MainServerClient, cookie: str | None, fallback: BotStats
) -> BotStats:
    """Upstream stats merged over *fallback* field by field

    Null or invalid upstream fields keep their fallback value; an
    unreachable main server yields *fallback* unchanged.
    """
    upstream = await client.fetch_stats(cookie)
    if upstream is None:
        logger.info("Using basic statistics")
        return fallback

    merged = fallback.to_json()
    for key, value in upstream.items():
        if value is None:
            continue
        try:
            BotStats.model_validate({**merged, key: value})
        except ValueError as e:
            logger.warning(f"Ignoring malformed upstream stat {key!r}: {e}")
            continue
        merged[key] = value

    return BotStats.model_validate(merged)
