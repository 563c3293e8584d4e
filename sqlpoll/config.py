"""
Configuration settings for sqlpoll.

Uses Pydantic Settings to load environment variables (or a `.env` file) for
the database connection, the polled statement and its schedule, and logging.
`Settings.source_config()` turns the flat settings into the immutable
SourceConfig consumed by a DatabaseSource.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlpoll.domain.models import DEFAULT_HOST, DEFAULT_PORT, SourceConfig, load_source_config


class Settings(BaseSettings):
    # Database
    db_host: str = Field(DEFAULT_HOST, alias="DB_HOST")
    db_port: int = Field(DEFAULT_PORT, alias="DB_PORT")
    db_name: Optional[str] = Field(None, alias="DB_NAME")
    db_user: Optional[str] = Field(None, alias="DB_USER")
    db_password: Optional[str] = Field(None, alias="DB_PASSWORD")

    # Source
    source_name: str = Field("database", alias="SOURCE_NAME")
    statement: str = Field("", alias="SOURCE_STATEMENT")
    schedule: Optional[str] = Field(None, alias="SOURCE_SCHEDULE")
    schedule_timezone: Optional[str] = Field(None, alias="SOURCE_SCHEDULE_TIMEZONE")
    failure_policy: str = Field("strict", alias="SOURCE_FAILURE_POLICY")
    retry_attempts: int = Field(0, alias="SOURCE_RETRY_ATTEMPTS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    def source_config(self, schedule: Optional[str] = None, once: bool = False) -> SourceConfig:
        """
        Build the SourceConfig for these settings.

        Parameters
        ----------
        schedule : str | None
            Overrides the configured cron expression.
        once : bool
            Drop the schedule so the statement runs exactly once.

        Raises
        ------
        ConfigurationError
            If the statement is empty or any value is invalid.
        """
        cron = None if once else (schedule or self.schedule)
        return load_source_config(
            {
                "name": self.source_name,
                "statement": self.statement,
                "connection": {
                    "host": self.db_host,
                    "port": self.db_port,
                    "database": self.db_name,
                    "user": self.db_user,
                    "password": self.db_password,
                },
                "schedule": {"cron": cron or None, "timezone": self.schedule_timezone},
                "failure_policy": self.failure_policy,
                "retry_attempts": self.retry_attempts,
            }
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
