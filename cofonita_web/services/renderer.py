"""Dashboard HTML rendering

Fragments and standalone pages are Jinja2 templates with autoescaping.
The dashboard page itself is a static template with literal ``${name}``
placeholders, filled in a single pass with already escaped values.
"""

import re
from pathlib import Path
from typing import Any

from fastapi.templating import Jinja2Templates
from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape
from pydantic import BaseModel

from cofonita_web.core.config import TEMPLATES_DIR
from cofonita_web.models import DEFAULT_AVATAR_URL, BotStats, Guild, User

PLACEHOLDERS = (
    "username",
    "discriminator",
    "avatarUrl",
    "serverCount",
    "serversHTML",
    "totalServers",
    "totalUsers",
    "commandsUsed",
    "uptime",
)
_PLACEHOLDER_RE = re.compile(r"\$\{(?:" + "|".join(PLACEHOLDERS) + r")\}")

STATUS_INSTALLED = "Bot instalado/conectado"
STATUS_MISSING = "Acceso requerido"


def escape_html(value: Any) -> str:
    """HTML-escape ``& < > " '``, rendering quotes as ``&quot;`` and ``&#039;``"""
    if value is None or value == "":
        return ""
    return str(escape(value)).replace("&#34;", "&quot;").replace("&#39;", "&#039;")


def _finalize(value: Any) -> Any:
    # Runs before autoescape; Markup output is not escaped twice
    if isinstance(value, Markup):
        return value
    return Markup(escape_html(value))


environment = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
    finalize=_finalize,
)
environment.globals.update(STATUS_INSTALLED=STATUS_INSTALLED, STATUS_MISSING=STATUS_MISSING)

templates = Jinja2Templates(env=environment)


def render_page(name: str, **context: Any) -> str:
    return environment.get_template(name).render(**context)


def abbreviate(value: int | float) -> str:
    """Shorten large counters: 1500 -> 1.5K, 2300000 -> 2.3M"""
    if value >= 1_000:
        thousands = f"{value / 1_000:.1f}"
        if float(thousands) < 1_000:
            return f"{thousands}K"
        return f"{value / 1_000_000:.1f}M"
    return str(value)


class DashboardView(BaseModel):
    """Everything the dashboard template needs, already filtered"""

    user: User
    guilds: list[Guild]
    stats: BotStats


def build_dashboard_view(user: User, stats: BotStats) -> DashboardView:
    return DashboardView(user=user, guilds=user.manageable_guilds, stats=stats)


def default_stats(user: User) -> BotStats:
    """Stats shown when the main server cannot be reached"""
    manageable = len(user.manageable_guilds)
    return BotStats(total_servers=manageable, manageable_servers=manageable)


def render_server_cards(guilds: list[Guild]) -> str:
    """One card per guild, or the empty-state block"""
    return render_page("servers.html", guilds=guilds)


def template_values(view: DashboardView) -> dict[str, str]:
    """Placeholder -> substituted text"""
    user = view.user
    stats = view.stats
    return {
        "${username}": escape_html(user.username or "Usuario"),
        "${discriminator}": escape_html(user.discriminator or "0000"),
        "${avatarUrl}": escape_html(user.avatar_url or DEFAULT_AVATAR_URL),
        "${serverCount}": str(len(view.guilds)),
        "${serversHTML}": render_server_cards(view.guilds),
        "${totalServers}": str(stats.total_servers),
        "${totalUsers}": abbreviate(stats.total_users),
        "${commandsUsed}": abbreviate(stats.commands_used),
        "${uptime}": str(stats.uptime),
    }


def render_dashboard(view: DashboardView, template: str) -> str:
    # Single pass, so substituted text is never scanned for placeholders again
    values = template_values(view)
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(0)], template)


def load_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")
