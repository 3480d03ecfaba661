"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts against a local SQLite file without any setup.  In a
production deployment override these via environment variables.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Subscriptions API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    debug: bool = _env_bool("DEBUG", "false")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    # Path to the SQLite database.  A relative path is resolved against
    # the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "subscriptions.db")

    # Apply pending migrations when the application starts.
    should_migrate: bool = _env_bool("SHOULD_MIGRATE", "true")

    # Startup connection probing.  The delay before retry ``n`` is
    # ``db_connect_backoff * n`` seconds.
    db_connect_attempts: int = int(os.getenv("DB_CONNECT_ATTEMPTS", "5"))
    db_connect_backoff: float = float(os.getenv("DB_CONNECT_BACKOFF", "1.0"))

    # Seconds a connection waits on a locked database before failing.
    db_timeout: float = float(os.getenv("DB_TIMEOUT", "5.0"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
