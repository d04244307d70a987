"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """SQLite persistence settings."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/gifter.db"
    busy_timeout_ms: int = 5000  # how long a writer waits on a locked database


class TierSettings(BaseSettings):
    """Tier table source and milestone spacing.

    When table_path is unset the built-in DEFAULT_TIERS snapshot is used.
    A JSON table is validated at startup and refused if malformed.
    """

    model_config = SettingsConfigDict(env_prefix="TIERS_")

    table_path: str | None = None
    milestone_step: int = 5  # every 5th level is a milestone


class PriceSettings(BaseSettings):
    """Coin price submission and aggregation settings."""

    model_config = SettingsConfigDict(env_prefix="PRICES_")

    timezone: str = "UTC"  # canonical zone for calendar-day bucketing
    default_currency: str = "BRL"
    history_limit: int = 10  # calculations shown per source


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    trust_source_id: bool = False  # accept source_id from request bodies


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    storage: StorageSettings = StorageSettings()
    tiers: TierSettings = TierSettings()
    prices: PriceSettings = PriceSettings()
    api: ApiSettings = ApiSettings()
