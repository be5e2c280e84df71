from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "HR Back Office"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://hr_backoffice:hr_backoffice@db:5432/hr_backoffice"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Statistics cache. Redis is used when a URL is configured.
    redis_url: str | None = None
    statistics_cache_ttl_seconds: int = 300

    # Roles whose approval records decide a leave request's status.
    leave_required_approver_roles: list[str] = ["HR Manager"]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
