"""Discord REST client for the OAuth2 login and the bot's guild list"""

import logging
from typing import Any
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)


class DiscordAPIError(Exception):
    """Raised when a Discord API call does not return the expected payload"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DiscordAPIClient:
    """OAuth2 code grant plus the few REST reads the dashboard needs.

    User calls authenticate with the user's bearer token, the bot guild
    list with ``Bot <token>``. All calls share one ``httpx.AsyncClient``.
    """

    SCOPES = ("identify", "guilds")

    API_BASE = "https://discord.com/api/v10"
    TOKEN_URL = "https://discord.com/api/oauth2/token"
    AUTHORIZE_URL = "https://discord.com/oauth2/authorize"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        bot_token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.bot_token = bot_token
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    def authorize_url(self, state: str | None = None) -> str:
        """Consent screen URL for the ``identify guilds`` scopes"""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
        }
        if state:
            params["state"] = state
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict[str, str]:
        """Trade an authorization code for ``access_token``/``refresh_token``

        Raises:
            DiscordAPIError: Discord rejected the code or sent no access token
            httpx.HTTPError: transport failure or timeout
        """
        response = await self._http.post(
            self.TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            auth=(self.client_id, self.client_secret),
        )
        if response.status_code != 200:
            logger.error(f"Token exchange returned {response.status_code}: {response.text}")
            raise DiscordAPIError("Token exchange failed", status_code=response.status_code)

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise DiscordAPIError("Token response has no access_token")

        return {
            "access_token": access_token,
            "refresh_token": payload.get("refresh_token") or "",
        }

    async def _get(self, path: str, authorization: str, **params: Any) -> Any:
        response = await self._http.get(
            f"{self.API_BASE}{path}",
            headers={"Authorization": authorization},
            params=params or None,
        )
        if response.status_code != 200:
            logger.error(f"Discord API {path} returned {response.status_code}: {response.text}")
            raise DiscordAPIError(f"GET {path} failed", status_code=response.status_code)
        return response.json()

    async def get_current_user(self, access_token: str) -> dict[str, Any]:
        data: dict[str, Any] = await self._get("/users/@me", f"Bearer {access_token}")
        return data

    async def get_current_user_guilds(self, access_token: str) -> list[dict[str, Any]]:
        """Guilds the user belongs to, with approximate member counts"""
        data: list[dict[str, Any]] = await self._get(
            "/users/@me/guilds", f"Bearer {access_token}", with_counts="true"
        )
        return data

    async def get_bot_guilds(self) -> list[dict[str, Any]]:
        if not self.bot_token:
            raise DiscordAPIError("Bot token not configured")
        data: list[dict[str, Any]] = await self._get("/users/@me/guilds", f"Bot {self.bot_token}")
        return data
