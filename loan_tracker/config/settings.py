"""
Configuration Management for Loan Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Sharing policy (expiry window, hashing cost) lives in configuration
rather than in code, so it can be tuned without touching the builder.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Key-value store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: str = Field(
        default="json_file",
        pattern="^(memory|json_file|google_sheets)$",
        description="Which backend holds the store"
    )
    data_path: str = Field(
        default="data/loan_tracker.json",
        description="Path of the JSON file used by the json_file backend"
    )
    key_prefix: str = Field(
        default="loanTracker_",
        min_length=1,
        description="Prefix for every key written to the store"
    )
    audit_max_events: int = Field(
        default=500,
        ge=10,
        le=100_000,
        description="Most recent audit events kept in the store; older ones are dropped"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    worksheet_name: str = Field(
        default="LoanTrackerStore",
        description="Name of the worksheet holding the key-value rows"
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


class SharingSettings(BaseSettings):
    """Share link policy."""

    model_config = SettingsConfigDict(
        env_prefix="SHARING_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:8501",
        description="Public address the shared links point at"
    )
    default_expiry_days: int = Field(
        default=7,
        ge=1,
        description="Lifetime of a link when the caller does not choose one"
    )
    max_expiry_days: int = Field(
        default=31,
        ge=1,
        le=365,
        description="Longest lifetime a caller may request"
    )
    generated_password_bytes: int = Field(
        default=6,
        ge=4,
        le=32,
        description="Entropy (bytes) of passwords generated for protected links"
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=16,
        description="bcrypt cost factor for link password verifiers"
    )

    @model_validator(mode='after')
    def validate_expiry_window(self) -> 'SharingSettings':
        """The default lifetime must be one a caller could request."""
        if self.default_expiry_days > self.max_expiry_days:
            raise ValueError("default_expiry_days cannot exceed max_expiry_days")
        return self

    @property
    def normalized_base_url(self) -> str:
        return self.base_url.rstrip("/")


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

    # Presentation
    currency_symbol: str = Field(
        default="$",
        max_length=5,
        description="Symbol shown in front of amounts"
    )

    # Data
    seed_sample_data: bool = Field(
        default=True,
        description="Fill an empty store with the example people"
    )
    upcoming_payments_limit: int = Field(
        default=3,
        ge=1,
        le=20,
        description="How many upcoming scheduled payments to show"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1_000_000_000.0,
        gt=0,
        description="Amounts above this are flagged for review"
    )
    max_description_length: int = Field(
        default=200,
        ge=10,
        le=1000,
        description="Longest accepted transaction description"
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

    # Sub-settings are loaded lazily so that an unconfigured
    # Google Sheets section does not break the other backends.

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def sharing(self) -> SharingSettings:
        return SharingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every section that failed.
    Google Sheets is only checked when it is the selected backend.
    """
    results = {}

    settings = settings or get_settings()

    sections = ["app", "storage", "sharing"]
    try:
        if settings.storage.backend == "google_sheets":
            sections.append("google_sheets")
    except Exception:
        pass  # reported by the storage section below

    for name in sections:
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
