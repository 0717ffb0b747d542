"""
Configuration Utility - Environment Variables Management

Centralized configuration loading from .env files using pydantic-settings.
Type-safe access to the schedule, crontab and logging settings.

Usage:
    from utils.config import settings

    schedule_file = settings.SCHEDULE_FILE
    log_path = settings.output_path()
"""

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Schedule Definition
    SCHEDULE_FILE: str = Field(default="config/schedule.yml")
    SCHEDULE_PATH: str = Field(default="/swsd-data-extractor")
    SCHEDULE_OUTPUT: str | None = Field(default=None)
    BUNDLE_COMMAND: str = Field(default="bundle exec")
    ENVIRONMENT: str = Field(default="production")
    ENVIRONMENT_VARIABLE: str = Field(default="RAILS_ENV")
    JOB_TEMPLATE: str = Field(default="/bin/bash -l -c ':job'")

    # Crontab Installation
    CRONTAB_COMMAND: str = Field(default="crontab")
    CRONTAB_USER: str | None = Field(default=None)
    CRONTAB_IDENTIFIER: str = Field(default="swsd-data-extractor")
    CRON_TIMEZONE: str | None = Field(default=None)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="text")

    # Application Metadata
    APP_NAME: str = Field(default="extract-schedule")
    APP_VERSION: str = Field(default="0.1.0")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    def output_path(self) -> str:
        """Log file the scheduled commands append to.

        Defaults to <SCHEDULE_PATH>/exports/log/cron_log.log.
        """
        if self.SCHEDULE_OUTPUT:
            return self.SCHEDULE_OUTPUT
        return os.path.join(self.SCHEDULE_PATH, "exports", "log", "cron_log.log")

    def schedule_settings(self) -> dict[str, str]:
        """Definition-wide placeholder bindings seeded into every schedule."""
        return {
            "path": self.SCHEDULE_PATH,
            "output": self.output_path(),
            "bundle_command": self.BUNDLE_COMMAND,
            "environment": self.ENVIRONMENT,
            "environment_variable": self.ENVIRONMENT_VARIABLE,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Singleton Settings instance
    """
    return Settings()


# Global settings instance
settings = get_settings()
