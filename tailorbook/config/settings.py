"""
Configuration Management for TailorBook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets backend store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per collection
    users_sheet_name: str = Field(default="Users")
    customers_sheet_name: str = Field(default="Customers")
    orders_sheet_name: str = Field(default="Orders")
    expenses_sheet_name: str = Field(default="Expenses")
    workers_sheet_name: str = Field(default="Workers")
    worker_payments_sheet_name: str = Field(default="WorkerPayments")
    accounts_sheet_name: str = Field(default="Accounts")
    settings_sheet_name: str = Field(
        default="BusinessSettings",
        description="Key/value worksheet for the business settings singleton"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    def sheet_name_for(self, collection: str) -> str:
        """Worksheet title for a snapshot collection name."""
        return getattr(self, f"{collection}_sheet_name")


class SyncSettings(BaseSettings):
    """Autosave behaviour of the collection store."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        extra="ignore"
    )

    debounce_seconds: float = Field(
        default=2.5,
        gt=0.0,
        le=60.0,
        description="Quiet period after the last mutation before a bulk save"
    )
    load_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for the initial state load"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Messaging
    phone_country_code: str = Field(
        default="92",
        pattern=r"^\d{1,3}$",
        description="Country code used when normalizing customer phone numbers"
    )

    # Accounts
    min_password_length: int = Field(
        default=6,
        ge=4,
        le=64,
        description="Minimum length for new passwords"
    )
    default_staff_password: str = Field(
        default="staff123",
        description="Initial password for user accounts created alongside workers"
    )

    # Presentation defaults
    default_business_name: str = Field(
        default="Designer Tailors",
        description="Business name used when no settings are stored"
    )
    currency_label: str = Field(
        default="Rs.",
        description="Currency prefix for formatted amounts"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built lazily so a missing Sheets config
    # does not stop in-memory use

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("google_sheets", "sync", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
