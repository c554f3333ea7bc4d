from __future__ import annotations

import httpx
import pytest
from conftest import (
    FRONTEND,
    MAIN_SERVER,
    json_response,
    login,
    make_discord_api,
    make_main_server,
    make_settings,
    sample_user,
    unreachable,
)
from fastapi.testclient import TestClient

from cofonita_web.app import create_app
from cofonita_web.core.cache import BotGuildCache
from cofonita_web.core.session import MemorySessionStore


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore(ttl=3600)


@pytest.fixture
def settings():
    return make_settings(role="dashboard", discord_token="")


def make_client(settings, store, handler=unreachable) -> TestClient:
    app = create_app(
        settings,
        discord_api=make_discord_api(unreachable),
        main_server=make_main_server(handler),
        sessions=store,
        bot_guilds=BotGuildCache(None),
    )
    return TestClient(app, follow_redirects=False)


def upstream_user() -> dict:
    return {"success": True, "user": sample_user().public_dict()}


def test_no_session_and_no_upstream_redirects_with_path(settings, store) -> None:
    with make_client(settings, store) as client:
        response = client.get("/dashboard")
        with_query = client.get("/api/bot/stats", params={"x": "1"})

    assert response.status_code == 302
    assert response.headers["location"] == f"{FRONTEND}/login?redirect=%2Fdashboard"
    assert with_query.headers["location"] == f"{FRONTEND}/login?redirect=%2Fapi%2Fbot%2Fstats%3Fx%3D1"


def test_delegated_login_creates_local_session(settings, store) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        if request.url.path == "/api/user":
            assert "cofonita.sid=upstream" in request.headers["cookie"]
            return json_response(upstream_user())
        return json_response({"success": True, "stats": {"totalUsers": 2500}})

    with make_client(settings, store, handler) as client:
        client.cookies.set("cofonita.sid", "upstream")
        response = client.get("/dashboard")

        assert response.status_code == 200
        assert "dashboard.sid" in response.headers["set-cookie"]
        assert len(store) == 1

        again = client.get("/api/dashboard/enhanced")

    assert "salvox" in response.text
    assert "2.5K" in response.text
    assert calls.count("/api/user") == 1
    assert again.json()["user"]["last_login"] is not None


def test_stats_timeout_renders_defaults(settings, store) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with make_client(settings, store, handler) as client:
        login(client, store, settings, sample_user())
        page = client.get("/dashboard")
        stats = client.get("/api/bot/stats")

    assert page.status_code == 200
    assert "99.8%" in page.text
    assert stats.json() == {
        "success": True,
        "stats": {
            "totalServers": 1,
            "manageableServers": 1,
            "totalUsers": 0,
            "uptime": 99.8,
            "commandsUsed": 0,
        },
    }


def test_dashboard_renders_manageable_guild_card(settings, store) -> None:
    with make_client(settings, store) as client:
        login(client, store, settings, sample_user())
        response = client.get("/dashboard")

    assert response.status_code == 200
    assert "&lt;Test&gt;" in response.text
    assert "Bot instalado/conectado" in response.text
    assert "Configurar" in response.text
    assert "${" not in response.text


def test_broken_template_renders_error_page(settings, store, tmp_path) -> None:
    broken = settings.model_copy(update={"dashboard_template": tmp_path / "missing.html"})
    with make_client(broken, store) as client:
        login(client, store, broken, sample_user())
        response = client.get("/dashboard")

    assert response.status_code == 500
    assert "Error del Dashboard" in response.text


def test_guild_connect_proxies_main_server(settings, store) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/login/1":
            return json_response({"success": True, "login_url": "https://web.example/login?guild_id=1"})
        return json_response({"success": False}, status_code=500)

    user = sample_user(
        guilds=[
            {"id": "1", "name": "Admin", "permissions": 8},
            {"id": "2", "name": "Member", "permissions": 0},
            {"id": "3", "name": "Other admin", "permissions": 8},
        ]
    )
    with make_client(settings, store, handler) as client:
        login(client, store, settings, user)
        ok = client.post("/api/guild/1/connect")
        forbidden = client.post("/api/guild/2/connect")
        unknown = client.post("/api/guild/99/connect")
        upstream_failure = client.post("/api/guild/3/connect")

    assert ok.json() == {"success": True, "login_url": "https://web.example/login?guild_id=1"}
    assert forbidden.status_code == 403
    assert unknown.status_code == 403
    assert upstream_failure.status_code == 500
    assert upstream_failure.json()["error"] == "Error obteniendo enlace de conexión"


def test_unknown_route_renders_html(settings, store) -> None:
    with make_client(settings, store) as client:
        response = client.get("/nope")

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("text/html")
    assert "Página no encontrada" in response.text
    assert "/nope" in response.text


def test_logout_hands_off_to_main_server(settings, store) -> None:
    with make_client(settings, store) as client:
        login(client, store, settings, sample_user())
        response = client.get("/logout")

    assert response.status_code == 302
    assert response.headers["location"] == f"{MAIN_SERVER}/logout"
    assert store.get("test-sid") is None


def test_health(settings, store) -> None:
    with make_client(settings, store) as client:
        login(client, store, settings, sample_user())
        response = client.get("/health")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "cofonita-dashboard"
    assert body["authenticated"] is True
    assert "urls" not in body
