"""Cofonita bot web services: Discord OAuth backend and dashboard renderer."""

__version__ = "2.0.0"
