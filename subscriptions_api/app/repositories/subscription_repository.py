"""
Subscription repository.

``SubscriptionRepository`` is the persistence contract used by the
service layer; ``SQLiteSubscriptionRepository`` implements it on top
of the ``subscriptions`` table created by ``core.db.init_db``.

Rows are never physically deleted.  ``remove_by_id`` sets the
``is_deleted`` flag and every other statement is scoped to rows where
the flag is clear, so a removed subscription behaves exactly like one
that never existed.

All queries use parameterized statements.  Timestamps are stored as
fixed‑width UTC strings so that SQL comparisons order them
chronologically.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from subscriptions_api.app.core.db import get_connection, transaction
from subscriptions_api.app.models.subscription import NIL_UUID, Subscription, to_utc

logger = logging.getLogger(__name__)


_SELECT_COLUMNS = "SELECT id, owner_id, service_name, price, start_time, end_time FROM subscriptions"


class RepositoryError(Exception):
    """Raised when the underlying store fails."""


class SubscriptionNotFoundError(RepositoryError):
    """Raised when no live (not soft‑deleted) row matches the id."""


@dataclass
class SubscriptionsFilter:
    """Optional constraints for ``SubscriptionRepository.find``.

    ``end_time`` bounds the subscription's *start* time, the same as
    ``start_time`` does from below.
    """

    owner_id: uuid.UUID = NIL_UUID
    service_name: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class SubscriptionRepository(ABC):
    """Persistence contract for subscriptions."""

    @abstractmethod
    def add(self, subscription: Subscription) -> None:
        ...

    @abstractmethod
    def update(self, subscription: Subscription) -> None:
        """Replace every stored field of a live subscription.

        Raises ``SubscriptionNotFoundError`` if no live row has the id.
        """

    @abstractmethod
    def remove_by_id(self, subscription_id: uuid.UUID) -> None:
        """Soft‑delete a subscription.

        Removing an unknown or already removed id is a no-op.
        """

    @abstractmethod
    def find_by_id(self, subscription_id: uuid.UUID) -> Subscription:
        ...

    @abstractmethod
    def find(self, filter: SubscriptionsFilter) -> List[Subscription]:
        """Return live subscriptions matching ``filter`` ordered by id."""


def _format_timestamp(value: datetime) -> str:
    # Fixed-width text (four-digit year) so SQL comparisons are chronological.
    return to_utc(value).replace(tzinfo=None).isoformat(sep=" ", timespec="microseconds")


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class SQLiteSubscriptionRepository(SubscriptionRepository):
    """Subscription repository backed by SQLite.

    ``database_url`` overrides ``settings.database_url``; it is mostly
    useful for tests and for tools operating on another database file.
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        self.database_url = database_url

    def add(self, subscription: Subscription) -> None:
        sql = """
            INSERT INTO subscriptions (id, owner_id, service_name, price, is_deleted, start_time, end_time)
            VALUES (?, ?, ?, ?, 0, ?, ?)
        """
        params = (
            str(subscription.id),
            str(subscription.owner),
            subscription.service_name,
            subscription.price_rub,
            _format_timestamp(subscription.started_at),
            _format_timestamp(subscription.completed_at) if subscription.is_completed() else None,
        )
        self._execute_write("add", sql, params, subscription.id)
        logger.info("Added subscription %s", subscription.id)

    def update(self, subscription: Subscription) -> None:
        sql = """
            UPDATE subscriptions
               SET owner_id = ?, service_name = ?, price = ?, start_time = ?, end_time = ?
             WHERE id = ? AND is_deleted = 0
        """
        params = (
            str(subscription.owner),
            subscription.service_name,
            subscription.price_rub,
            _format_timestamp(subscription.started_at),
            _format_timestamp(subscription.completed_at) if subscription.is_completed() else None,
            str(subscription.id),
        )
        if self._execute_write("update", sql, params, subscription.id) == 0:
            raise SubscriptionNotFoundError(f"subscription {subscription.id} not found")
        logger.info("Updated subscription %s", subscription.id)

    def remove_by_id(self, subscription_id: uuid.UUID) -> None:
        sql = "UPDATE subscriptions SET is_deleted = 1 WHERE id = ? AND is_deleted = 0"
        if self._execute_write("remove", sql, (str(subscription_id),), subscription_id) == 0:
            logger.info("Subscription %s already absent", subscription_id)
            return
        logger.info("Removed subscription %s", subscription_id)

    def find_by_id(self, subscription_id: uuid.UUID) -> Subscription:
        sql = f"{_SELECT_COLUMNS} WHERE id = ? AND is_deleted = 0"
        logger.debug("Performing query: %s", sql)
        try:
            conn = get_connection(self.database_url)
            try:
                row = conn.execute(sql, (str(subscription_id),)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Failed to fetch subscription %s: %s", subscription_id, exc)
            raise RepositoryError(f"failed to fetch subscription {subscription_id}: {exc}") from exc

        if row is None:
            logger.warning("Subscription %s not found", subscription_id)
            raise SubscriptionNotFoundError(f"subscription {subscription_id} not found")
        return self._row_to_subscription(row)

    def find(self, filter: SubscriptionsFilter) -> List[Subscription]:
        where_clauses = ["is_deleted = 0"]
        params: list = []
        if filter.owner_id is not None and filter.owner_id != NIL_UUID:
            where_clauses.append("owner_id = ?")
            params.append(str(filter.owner_id))
        if filter.service_name:
            where_clauses.append("service_name = ?")
            params.append(filter.service_name)
        if filter.start_time is not None:
            where_clauses.append("start_time >= ?")
            params.append(_format_timestamp(filter.start_time))
        if filter.end_time is not None:
            where_clauses.append("start_time <= ?")
            params.append(_format_timestamp(filter.end_time))
        sql = f"{_SELECT_COLUMNS} WHERE {' AND '.join(where_clauses)} ORDER BY id"

        logger.debug("Performing query: %s", sql)
        try:
            conn = get_connection(self.database_url)
            try:
                rows = conn.execute(sql, tuple(params)).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.error("Failed to query subscriptions: %s", exc)
            raise RepositoryError(f"failed to query subscriptions: {exc}") from exc

        subscriptions = [self._row_to_subscription(row) for row in rows]
        logger.info("Fetched %d subscriptions", len(subscriptions))
        return subscriptions

    def _execute_write(self, action: str, sql: str, params: tuple, subscription_id: uuid.UUID) -> int:
        """Run one mutating statement in its own transaction; return the affected row count."""
        logger.debug("Performing query: %s", " ".join(sql.split()))
        try:
            with transaction(self.database_url) as cursor:
                cursor.execute(sql, params)
                return cursor.rowcount
        except sqlite3.Error as exc:
            logger.error("Failed to %s subscription %s: %s", action, subscription_id, exc)
            raise RepositoryError(f"failed to {action} subscription {subscription_id}: {exc}") from exc

    @staticmethod
    def _row_to_subscription(row: sqlite3.Row) -> Subscription:
        """Convert a database row to a Subscription entity."""
        return Subscription(
            id=uuid.UUID(row["id"]),
            owner=uuid.UUID(row["owner_id"]),
            service_name=row["service_name"],
            price_rub=row["price"],
            started_at=_parse_timestamp(row["start_time"]),
            completed_at=_parse_timestamp(row["end_time"]) if row["end_time"] is not None else None,
        )
