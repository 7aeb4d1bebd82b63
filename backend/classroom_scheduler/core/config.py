# backend/classroom_scheduler/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


DEFAULT_FREEZE_NOTE = "Auto-created from schedule change (preserving old schedule)"


class Settings(BaseSettings):
    environment: str = Field(
        default="development",
        description="Deployment environment name (development, staging, production)",
    )
    is_testing: bool = Field(default=False, description="Set by the test suite")

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./classroom_scheduler.db",
        description="SQLAlchemy URL of the transactional store",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")
    sqlite_busy_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How long a SQLite writer waits for the write lock before failing",
    )
    bulk_upsert_batch_size: int = Field(
        default=500,
        ge=1,
        description="Max rows per INSERT .. ON CONFLICT statement",
    )

    # Scheduling behaviour
    default_session_location: str = Field(
        default="offline",
        description="Location stored on a materialized session when none is supplied",
    )
    freeze_horizon_months: int = Field(
        default=6,
        ge=1,
        description="How far ahead materialize_existing freezes the old cadence",
    )
    freeze_note: str = Field(
        default=DEFAULT_FREEZE_NOTE,
        description="Provenance note written on sessions frozen by a schedule change",
    )
    self_check_in_note: str = Field(
        default="Self check-in",
        description="Attendance note recorded by the self check-in kiosk",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level",
    )
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
        description="logging.Formatter format string",
    )

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = Settings()
