"""
Application configuration using Pydantic Settings.
Loads from environment variables and .env file.
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "TaskFlow API"
    debug: bool = False
    port: int = 3000
    log_level: str = "INFO"

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "taskflow"
    db_user: str = "taskflow"
    db_password: str = ""
    database_url: Optional[str] = None

    # Connection pool settings
    db_pool_size: int = 20
    db_pool_max_overflow: int = 10
    db_pool_timeout: int = 30

    # JWT
    jwt_access_secret: str = "taskflow-access-secret-change-in-production"
    jwt_refresh_secret: str = "taskflow-refresh-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_expiration_minutes: int = 15
    jwt_refresh_expiration_days: int = 7

    # WebSocket handshake: query parameter carrying the access token
    ws_token_query_param: str = "token"

    # CORS
    cors_origins: list[str] = ["*"]

    @property
    def async_database_url(self) -> str:
        """Build async database URL for SQLAlchemy."""
        if self.database_url:
            # Convert standard postgres:// to postgresql+asyncpg://
            url = self.database_url
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            elif url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url

        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings (called once at startup)."""
    settings = settings or get_settings()
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
