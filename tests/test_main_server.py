from __future__ import annotations

import asyncio

import httpx
from conftest import json_response, make_main_server, unreachable

from cofonita_web.models import BotStats
from cofonita_web.services import resolve_stats


def test_fetch_user_forwards_cookie() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["cookie"] = request.headers["cookie"]
        seen["agent"] = request.headers["user-agent"]
        return json_response({"success": True, "user": {"id": "42", "username": "salvox"}})

    user = asyncio.run(make_main_server(handler).fetch_user("cofonita.sid=abc"))

    assert user is not None and user.username == "salvox"
    assert seen == {"cookie": "cofonita.sid=abc", "agent": "Dashboard-Server"}


def test_fetch_user_failures_return_none() -> None:
    responses = [
        json_response({"success": False, "error": "No autenticado"}, status_code=401),
        json_response({"success": False}),
        httpx.Response(200, text="<html>login</html>"),
        httpx.Response(302, headers={"location": "/login"}),
    ]
    for response in responses:
        client = make_main_server(lambda request, r=response: r)
        assert asyncio.run(client.fetch_user("a=b")) is None

    assert asyncio.run(make_main_server(unreachable).fetch_user(None)) is None


def test_resolve_stats_merges_over_fallback() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/bot/stats"
        return json_response({"success": True, "stats": {"totalServers": 120, "totalUsers": 5400}})

    fallback = BotStats(total_servers=2, manageable_servers=2)
    stats = asyncio.run(resolve_stats(make_main_server(handler), "a=b", fallback))

    assert stats.total_servers == 120
    assert stats.total_users == 5400
    assert stats.manageable_servers == 2
    assert stats.uptime == 99.8


def test_resolve_stats_timeout_uses_fallback() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    fallback = BotStats(total_servers=1, manageable_servers=1)
    stats = asyncio.run(resolve_stats(make_main_server(handler), None, fallback))

    assert stats is fallback


def test_resolve_stats_keeps_valid_fields_when_others_are_bad() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return json_response(
            {
                "success": True,
                "stats": {
                    "totalServers": 120,
                    "totalUsers": 5400,
                    "uptime": None,
                    "commandsUsed": "many",
                },
            }
        )

    fallback = BotStats(total_servers=2, manageable_servers=2)
    stats = asyncio.run(resolve_stats(make_main_server(handler), "a=b", fallback))

    assert stats.total_servers == 120
    assert stats.total_users == 5400
    assert stats.uptime == 99.8
    assert stats.commands_used == 0
    assert stats.manageable_servers == 2
