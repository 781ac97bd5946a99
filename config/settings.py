"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Price sync service settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        default="",
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key; preferred for catalog writes when set"
    )

    # ===================
    # TELEGRAM
    # ===================
    telegram_bot_token: Optional[str] = Field(
        None,
        description="Telegram bot token from @BotFather"
    )
    telegram_chat_id: Optional[str] = Field(
        None,
        description="Telegram chat ID for sync failure alerts"
    )

    # ===================
    # PREVIEW
    # ===================
    preview_max_lines: int = Field(
        default=12,
        ge=2,
        le=200,
        description="Raw lines kept from an uploaded file before previewing (header + ~10 rows)"
    )
    preview_max_rows: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Mapped rows returned by a preview"
    )

    # ===================
    # PRICE SYNC
    # ===================
    sync_max_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Worker pool size for the read-only resolving and diffing phases"
    )
    sync_apply_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Worker pool size for catalog price updates"
    )
    auto_create_variants: bool = Field(
        default=True,
        description="Create catalog products for part numbers with no variant"
    )
    auto_sync_prices: bool = Field(
        default=False,
        description="Run a price sync right after a price list is committed"
    )
    supersede_previous_price_lists: bool = Field(
        default=True,
        description="Deactivate a supplier's older price lists when a new one is committed"
    )
    default_currency_code: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency used when neither the price list nor the row carries one"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def telegram_configured(self) -> bool:
        """Check if Telegram is properly configured."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
