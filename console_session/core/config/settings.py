"""Main settings and configuration management.

This module composes the settings from the different modules (app, api, auth,
storage) into a single `Settings` class.

It loads settings from environment variables and .env files, validates them,
and provides a `settings` object for the default application root. Components
also accept an explicit `Settings` instance so tests and embedding
applications can run several independent roots side by side.

Environment Support:
- Development: Uses .env
- Test: Uses .env.test when present
- Staging: Uses .env.staging when present
- Production: Uses .env.production when present
"""

import logging
import os
from pathlib import Path

from pydantic_settings import SettingsConfigDict

from .api import ApiSettings
from .app import AppSettings
from .auth import AuthSettings
from .storage import StorageSettings

logger = logging.getLogger(__name__)


class Settings(AppSettings, ApiSettings, AuthSettings, StorageSettings):
    """The main settings class that aggregates all configurations.

    It inherits from all the specialized settings classes, providing a unified
    interface to all configuration parameters.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


def create_settings() -> Settings:
    """Create settings instance with environment-specific configuration.

    Returns:
        Settings: Configured settings instance
    """
    env = os.getenv("APP_ENV", "development")

    env_files = {
        "development": ".env",
        "test": ".env.test",
        "staging": ".env.staging",
        "production": ".env.production",
    }

    env_file = env_files.get(env, ".env")

    if env != "development" and Path(env_file).exists():
        logger.info(f"Loading environment configuration from {env_file}")
        settings_instance = Settings(_env_file=env_file)
    elif Path(".env").exists():
        logger.info(f"Loading environment configuration from .env (environment: {env})")
        settings_instance = Settings()
    else:
        logger.debug(f"No .env file found, using environment variables only (environment: {env})")
        settings_instance = Settings()

    return settings_instance


settings = create_settings()
