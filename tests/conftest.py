"""
Shared pytest fixtures.

Every test that touches storage gets its own SQLite file under
``tmp_path``; ``settings`` is patched so that both the repository and
the application startup hook use it.
"""

import os
import uuid
from datetime import datetime, timezone

import pytest

# Keep startup retries fast and never touch the default database file.
os.environ.setdefault("DB_CONNECT_ATTEMPTS", "1")
os.environ.setdefault("DB_CONNECT_BACKOFF", "0")

from subscriptions_api.app.core.config import settings  # noqa: E402
from subscriptions_api.app.core.db import init_db  # noqa: E402
from subscriptions_api.app.repositories.subscription_repository import (  # noqa: E402
    SQLiteSubscriptionRepository,
)
from subscriptions_api.app.services.subscription_service import SubscriptionService  # noqa: E402


@pytest.fixture
def database(tmp_path, monkeypatch):
    """Point the application at a fresh, migrated SQLite file."""
    path = str(tmp_path / "subscriptions.db")
    monkeypatch.setattr(settings, "database_url", path)
    monkeypatch.setattr(settings, "should_migrate", True)
    monkeypatch.setattr(settings, "db_connect_attempts", 1)
    monkeypatch.setattr(settings, "db_connect_backoff", 0.0)
    init_db()
    return path


@pytest.fixture
def repository(database):
    return SQLiteSubscriptionRepository()


@pytest.fixture
def service(repository):
    return SubscriptionService(repository)


@pytest.fixture
def owner():
    return uuid.uuid4()


@pytest.fixture
def jan_2023():
    return datetime(2023, 1, 1, tzinfo=timezone.utc)
