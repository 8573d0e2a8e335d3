from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    app_name: str = "Fleetwatch Backend"
    environment: str = "dev"
    log_level: str = "INFO"
    database_url: str = "sqlite+aiosqlite:///./fleet.db"
    redis_url: str = "redis://localhost:6379/0"
    broadcast_channel_prefix: str = "fleet"
    connection_monitor_enabled: bool = True
    connection_check_interval_seconds: float = 30
    stale_threshold_seconds: int = 60
    offline_threshold_seconds: int = 5 * 60
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3001"])

    model_config = SettingsConfigDict(env_prefix="FLEET_", env_file=".env", extra="ignore")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: str | list[str] | None) -> list[str]:
        if value is None or value == "":
            return []
        if isinstance(value, list):
            return value
        return [item.strip() for item in value.split(",") if item.strip()]

    @field_validator("offline_threshold_seconds")
    @classmethod
    def _offline_after_stale(cls, value: int, info) -> int:
        stale = info.data.get("stale_threshold_seconds")
        if stale is not None and value <= stale:
            raise ValueError("offline_threshold_seconds must be greater than stale_threshold_seconds")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
