"""
Configuration Management for Tamerun

Every setting comes from environment variables or a .env file, read
through pydantic-settings.

DESIGN DECISION: Google Sheets settings are optional at runtime.
When they are missing or incomplete the app falls back to in-memory
storage, so the UI and the tests run without any credentials.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where rows are kept: one spreadsheet, one worksheet per table."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        min_length=1,
        description="Service account key file used to open the spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="Spreadsheet that holds every table"
    )

    # One worksheet per table
    transactions_sheet_name: str = Field(default="transactions")
    categories_sheet_name: str = Field(default="categories")
    goals_sheet_name: str = Field(default="savings_goals")
    users_sheet_name: str = Field(default="users")
    audit_sheet_name: str = Field(
        default="audit_log",
        description="Worksheet receiving audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after start-up."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key not found at {v}; "
                "Sheets storage will fail to connect until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """Behaviour of the app itself: environment, logging, display and limits."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Show extra diagnostics on the settings page"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
    )

    # Display
    currency_symbol: str = Field(
        default="¥",
        max_length=3,
        description="Symbol shown in front of amounts"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=100_000_000.0,
        gt=0,
        description="Largest amount accepted for one transaction (sanity check)"
    )
    min_password_length: int = Field(
        default=6,
        ge=6,
        le=72,
        description="Minimum password length for sign-up"
    )

    # Auth
    email_redirect_url: str = Field(
        default="http://localhost:8501/auth/callback",
        description="Where the sign-up confirmation link sends the user"
    )


class Settings(BaseSettings):
    """Entry point for all settings groups."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so the app can run without
    # Google Sheets credentials (in-memory mode)

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings. Tests call get_settings.cache_clear() after patching the environment."""
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Try to load every settings group.

    Returns {group: loaded_ok}, with a {group}_error message for each
    group that failed. The settings page shows this table.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
