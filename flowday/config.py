from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App environment
    app_name: str = Field(default="FlowDay", alias="APP_NAME")
    env: str = Field(default="development", alias="ENV")
    debug: bool = Field(default=False, alias="DEBUG")

    # Logging configuration used by flowday.logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    console_log_level: str = Field(default="INFO", alias="CONSOLE_LOG_LEVEL")

    # Database (in-memory, rebuilt from fixtures on every start)
    database_url: str = Field(default="sqlite+aiosqlite:///:memory:", alias="DATABASE_URL")
    fixtures_dir: Path = Field(default=Path(__file__).resolve().parent / "fixtures", alias="FIXTURES_DIR")

    # Artificial latency applied to every store call to emulate a remote backend
    simulated_latency_ms: int = Field(default=250, alias="SIMULATED_LATENCY_MS")

    # Reminder settings
    reminder_check_interval_seconds: int = Field(default=60, alias="REMINDER_CHECK_INTERVAL_SECONDS")
    inapp_message_limit: int = Field(default=100, alias="INAPP_MESSAGE_LIMIT")

    # Push webhook used as the native notification channel.
    # Unset -> native notifications are reported as unsupported.
    push_url: Optional[str] = Field(default=None, alias="PUSH_URL")
    push_token: Optional[str] = Field(default=None, alias="PUSH_TOKEN")
    push_timeout_seconds: float = Field(default=10.0, alias="PUSH_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
