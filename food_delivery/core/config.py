"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports three modes:
    - DEVELOPMENT: Mock notification channel (messages are only logged)
    - STAGING / PRODUCTION: Real Telegram Bot API delivery

Storage availability is NOT a mode: when DATABASE_URL is missing or the
database cannot be reached, the persistence gateway degrades on its own.

Usage:
    from food_delivery.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Use mock services
    else:
        # Use real APIs
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.

    Attributes:
        DEVELOPMENT: Local testing with mock services
        PRODUCTION: Live environment with real API integrations
        STAGING: Pre-production testing with real APIs but test keys
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Sensitive values (JWT secret, admin key, bot token) should NEVER be
    committed to version control.
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
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Food Delivery API",
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
    api_port: int = Field(
        default=8000,
        description="API server port"
    )

    # ==========================================================================
    # DATABASE
    # ==========================================================================

    database_url: Optional[str] = Field(
        default=None,
        description="Async SQLAlchemy URL (postgresql+psycopg://...). Unset = mock mode"
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    db_probe_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between database liveness probes"
    )
    seed_demo_data: bool = Field(
        default=True,
        description="Insert the demo restaurant and menu into an empty catalog"
    )

    # ==========================================================================
    # AUTHENTICATION
    # ==========================================================================

    jwt_secret: str = Field(
        default="dev-secret-change-in-production",
        description="HMAC secret for bearer tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Bearer token signing algorithm"
    )
    admin_api_key: str = Field(
        default="dev-admin-key",
        description="Shared secret expected in the X-Admin-API-Key header"
    )

    # ==========================================================================
    # TELEGRAM NOTIFICATIONS
    # ==========================================================================

    telegram_bot_token: Optional[str] = Field(
        default=None,
        description="Telegram bot token (from @BotFather)"
    )
    telegram_chat_id: Optional[str] = Field(
        default=None,
        description="Operations chat that receives new-order messages"
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )
    notification_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for new-order notifications"
    )
    status_notification_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Timeout for status-change notifications"
    )

    # ==========================================================================
    # BUSINESS RULES
    # ==========================================================================

    strict_pricing: bool = Field(
        default=False,
        description="Reject orders with unparseable prices instead of zeroing them"
    )
    strict_status_transitions: bool = Field(
        default=False,
        description="Enforce the status transition table instead of any-to-any"
    )
    order_history_limit: int = Field(
        default=50,
        ge=1,
        description="Maximum orders returned by list endpoints"
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

    @field_validator("database_url", "telegram_bot_token", "telegram_chat_id", mode="before")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def use_real_services(self) -> bool:
        """Check if real external services should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []

        if self.use_real_services:
            if not self.database_url:
                missing.append("DATABASE_URL")
            if not self.telegram_bot_token:
                missing.append("TELEGRAM_BOT_TOKEN")
            if not self.telegram_chat_id:
                missing.append("TELEGRAM_CHAT_ID")
            if self.jwt_secret == "dev-secret-change-in-production":
                missing.append("JWT_SECRET")
            if self.admin_api_key == "dev-admin-key":
                missing.append("ADMIN_API_KEY")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once per process; tests call
    ``get_settings.cache_clear()`` after changing the environment.

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

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
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
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("food_delivery")
