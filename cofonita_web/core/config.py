"""Application configuration using Pydantic Settings"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"

SERVICE_VERSION = "2.0.0"
DEFAULT_SESSION_SECRET = "default_session_secret_change_this"

AUTH_SESSION_MAX_AGE = 7 * 24 * 60 * 60
DASHBOARD_SESSION_MAX_AGE = 24 * 60 * 60


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Service role: OAuth backend or dashboard renderer
    role: Literal["auth", "dashboard"] = Field(default="auth", description="Service role")

    # Discord OAuth
    discord_client_id: str = Field(
        default="",
        validation_alias=AliasChoices("discord_client_id", "client_id"),
        description="Discord OAuth Client ID",
    )
    discord_client_secret: str = Field(default="", description="Discord OAuth Client Secret")
    discord_token: str = Field(default="", description="Discord bot token")

    # Sessions
    session_secret: str = Field(
        default=DEFAULT_SESSION_SECRET,
        validation_alias=AliasChoices("session_secret", "dashboard_session_secret"),
        description="Secret used to sign session cookies",
    )

    # Server URLs
    main_server_url: str = Field(
        default="https://cofonitabot.onrender.com", description="Auth backend consulted by the dashboard"
    )
    frontend_url: str = Field(
        default="https://cofonitabot.netlify.app", description="Public website URL"
    )
    api_url: str = Field(
        default="https://cofonitabot.onrender.com", description="Public URL of the auth backend"
    )

    # Environment
    environment: str = Field(
        default="production",
        validation_alias=AliasChoices("environment", "node_env"),
        description="Environment name",
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, description="Server port")

    # Upstream timeouts (seconds)
    main_server_timeout: float = Field(default=5.0, description="Delegated auth/login timeout")
    stats_timeout: float = Field(default=3.0, description="Stats proxy timeout")
    discord_timeout: float = Field(default=10.0, description="Discord API timeout")

    bot_guilds_ttl: float = Field(default=300.0, description="Bot guild cache TTL in seconds")

    dashboard_template: Path = Field(
        default=TEMPLATES_DIR / "dashboard.html", description="Dashboard HTML template"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @field_validator("main_server_url", "frontend_url", "api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_role_requirements(self) -> "Settings":
        """The auth backend cannot start without its Discord credentials"""
        if self.role != "auth":
            return self

        missing = [
            name
            for name, value in (
                ("CLIENT_ID", self.discord_client_id),
                ("DISCORD_CLIENT_SECRET", self.discord_client_secret),
                ("DISCORD_TOKEN", self.discord_token),
            )
            if not value
        ]
        if missing:
            raise ValueError(f"Missing required configuration: {', '.join(missing)}")

        if self.is_production and ("localhost" in self.redirect_url or "127.0.0.1" in self.redirect_url):
            raise ValueError("REDIRECT_URL cannot point to localhost in production")

        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"

    @property
    def redirect_url(self) -> str:
        """OAuth callback registered in the Discord developer portal"""
        return f"{self.api_url}/auth/discord/callback"

    @property
    def service_name(self) -> str:
        return "cofonita-auth-backend" if self.role == "auth" else "cofonita-dashboard"

    @property
    def cookie_name(self) -> str:
        return "cofonita.sid" if self.role == "auth" else "dashboard.sid"

    @property
    def session_max_age(self) -> int:
        return AUTH_SESSION_MAX_AGE if self.role == "auth" else DASHBOARD_SESSION_MAX_AGE

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @property
    def cookie_samesite(self) -> Literal["lax", "none"]:
        # Website and API live on different sites in production
        return "none" if self.is_production else "lax"

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        origins = [self.frontend_url]
        if self.is_development:
            origins += ["http://localhost:3000", "http://localhost:4000"]
        return origins


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
