from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from cofonita_web.core.config import Settings
from cofonita_web.core.session import MemorySessionStore, SessionSigner
from cofonita_web.models import User
from cofonita_web.services import DiscordAPIClient, MainServerClient
from cofonita_web.services.guilds import build_user

FRONTEND = "https://web.example"
MAIN_SERVER = "https://main.example"
API = "https://api.example"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "role": "auth",
        "discord_client_id": "client-id",
        "discord_client_secret": "client-secret",
        "discord_token": "bot-token",
        "session_secret": "test-secret",
        "environment": "development",
        "frontend_url": FRONTEND,
        "main_server_url": MAIN_SERVER,
        "api_url": API,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


def make_discord_api(handler: Handler) -> DiscordAPIClient:
    return DiscordAPIClient(
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=f"{API}/auth/discord/callback",
        bot_token="bot-token",
        transport=httpx.MockTransport(handler),
    )


def make_main_server(handler: Handler) -> MainServerClient:
    return MainServerClient(MAIN_SERVER, transport=httpx.MockTransport(handler))


def unreachable(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def sample_user(guilds: list[dict[str, Any]] | None = None, bot_ids: set[str] | None = None) -> User:
    profile = {"id": "42", "username": "salvox", "discriminator": "1234", "avatar": None}
    return build_user(
        profile,
        guilds if guilds is not None else [{"id": "1", "name": "<Test>", "permissions": 8}],
        bot_ids if bot_ids is not None else {"1"},
        FRONTEND,
    )


def login(client: Any, store: MemorySessionStore, settings: Settings, user: User, sid: str = "test-sid") -> None:
    """Seed a server-side session and attach its signed cookie to *client*"""
    store.set(sid, {"user": user.model_dump()})
    signer = SessionSigner(settings.session_secret, settings.session_max_age)
    client.cookies.set(settings.cookie_name, signer.sign(sid))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
