"""Logging configuration"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from cofonita_web.core.config import Settings

# Per-request chatter, already covered by our own route logs
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def setup_logging(settings: Settings) -> None:
    """Route every logger through a single Rich handler on the root logger"""
    level = getattr(logging, settings.log_level, logging.INFO)

    handler = RichHandler(
        console=Console(force_terminal=settings.is_production, width=120),
        show_path=settings.is_development,
        markup=False,
        rich_tracebacks=True,
        tracebacks_width=120,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%Y-%m-%d %H:%M:%S]"))

    # force=True: uvicorn configures the root logger first
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging: {settings.log_level} | Env: {settings.environment} | Role: {settings.role}"
    )
