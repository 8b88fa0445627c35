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

    app_name: str = "HR Workflow"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    database_url: str = "postgresql+asyncpg://hrflow:hrflow@db:5432/hrflow"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]

    # Workflow
    leave_request_type_name: str = "Leave Request"
    enforce_leave_balance: bool = True
    conflict_retry_attempts: int = 3

    # Fulfillment artifact storage
    storage_root: str = "storage"
    storage_base_url: str = "/storage"
    max_upload_bytes: int = 10 * 1024 * 1024


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
