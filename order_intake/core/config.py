"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Settings are read once at process start (environment first, then an optional
.env file) and cached for the lifetime of the process.

Usage:
    from order_intake.core.config import get_settings

    settings = get_settings()
    url = settings.sqlalchemy_url

Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL, make_url


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local machine, verbose defaults
        PRODUCTION: Live point-of-sale deployment
        STAGING: Pre-production testing against a copy of the store
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class HotItemsPolicy(str, Enum):
    """
    Windowing policy for the hot-items report.

    Attributes:
        WEEKLY: Current Monday-Sunday week, bare item names
        ALL_TIME: Unwindowed summaries including never-ordered items
    """
    WEEKLY = "weekly"
    ALL_TIME = "all_time"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The store is addressed either by a full DATABASE_URL or by the
    DB_SERVER / DB_PORT / DB_DATABASE / DB_USERNAME / DB_PASSWORD parts,
    which are assembled into a PostgreSQL (psycopg) URL.
    Credentials should NEVER be committed to version control.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging and error details"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Order Intake API",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    port: int = Field(
        default=5000,
        description="API server listen port"
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )
    locale: str = Field(
        default="zh-TW",
        description="Locale for client-facing messages (zh-TW or en)"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    database_url: Optional[str] = Field(
        default=None,
        description="Full async SQLAlchemy URL; overrides the DB_* parts"
    )
    db_server: str = Field(
        default="localhost",
        description="Database host"
    )
    db_port: int = Field(
        default=5432,
        description="Database port"
    )
    db_database: str = Field(
        default="pos_system",
        description="Database name"
    )
    db_username: str = Field(
        default="pos_admin",
        description="Database user"
    )
    db_password: str = Field(
        default="",
        description="Database password"
    )
    db_pool_size: int = Field(
        default=10,
        description="Connection pool size"
    )
    db_max_overflow: int = Field(
        default=0,
        description="Extra connections allowed when the pool is full"
    )
    db_pool_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for a free pooled connection"
    )
    db_connect_timeout: int = Field(
        default=30,
        description="Seconds to wait when opening a new connection"
    )
    db_request_timeout: int = Field(
        default=30,
        description="Seconds a single statement may run before the store cancels it"
    )
    db_echo: bool = Field(
        default=False,
        description="Log every SQL statement (development only)"
    )

    # ==========================================================================
    # HOT ITEMS
    # ==========================================================================

    hot_items_policy: HotItemsPolicy = Field(
        default=HotItemsPolicy.WEEKLY,
        description="Windowing policy for /api/hot-items"
    )
    hot_items_limit: int = Field(
        default=10,
        ge=1,
        description="Maximum number of hot items reported"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    @field_validator("hot_items_policy", mode="before")
    @classmethod
    def validate_hot_items_policy(cls, v: str) -> HotItemsPolicy:
        """Accept 'all-time' as well as 'all_time'."""
        if isinstance(v, HotItemsPolicy):
            return v
        try:
            return HotItemsPolicy(v.lower().replace("-", "_"))
        except ValueError:
            valid = [p.value for p in HotItemsPolicy]
            raise ValueError(f"Invalid hot_items_policy. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_production(self) -> bool:
        """Production never exposes exception details, even with DEBUG on."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def sqlalchemy_url(self) -> URL:
        """Async SQLAlchemy URL for the order store."""
        if self.database_url:
            return make_url(self.database_url)
        return URL.create(
            "postgresql+psycopg",
            username=self.db_username,
            password=self.db_password or None,
            host=self.db_server,
            port=self.db_port,
            database=self.db_database,
        )

    @property
    def database_server(self) -> str:
        """host:port of the store, as reported by the health check."""
        url = self.sqlalchemy_url
        if url.host is None:
            return url.get_backend_name()
        return f"{url.host}:{url.port or self.db_port}"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get allowed CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache so settings are loaded only once per process.
    Tests call ``get_settings.cache_clear()`` after changing the environment.

    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-32s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    if not settings.db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("order_intake")
