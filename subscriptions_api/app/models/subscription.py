"""
Subscription domain entity.

A subscription records that a user (``owner``) pays ``price_rub`` for
a named service from ``started_at`` until ``completed_at`` (or
indefinitely while ``completed_at`` is unset).  The entity guards its
own invariants:

* ``started_at`` is never in the future at the moment it is set;
* ``completed_at``, when set, is not before ``started_at``;
* ``price_rub`` is not negative;
* ``owner`` is never the nil UUID;
* ``service_name`` is not empty.

Each mutator validates its own concern and raises
``SubscriptionValidationError`` without touching the entity when the
check fails.  All timestamps are normalised to UTC when they are set.
Deletion is a storage concern and is not represented here.
"""

from __future__ import annotations

import os
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

NIL_UUID = uuid.UUID(int=0)

_CREATE_PREFIX = "can not create subscription: "
_UPDATE_PREFIX = "can not update subscription: "


class SubscriptionValidationError(ValueError):
    """Raised when a subscription invariant would be violated."""


def to_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_id_lock = threading.Lock()
_last_ms = 0
_last_seq = 0


def new_subscription_id() -> uuid.UUID:
    """Generate a time‑ordered UUID (version 7).

    The first 48 bits hold the Unix time in milliseconds and the
    following 12 bits (``rand_a``) a sequence counter, so ids sort in
    creation order both as UUIDs and as their string form, including
    ids generated within the same millisecond.  When the counter
    overflows, the timestamp is advanced by one millisecond.
    """
    global _last_ms, _last_seq
    with _id_lock:
        unix_ms = time.time_ns() // 1_000_000
        if unix_ms <= _last_ms:
            unix_ms = _last_ms
            seq = _last_seq + 1
            if seq > 0xFFF:
                unix_ms += 1
                seq = 0
        else:
            # random start in the lower half leaves room to count up
            seq = int.from_bytes(os.urandom(2), "big") & 0x7FF
        _last_ms, _last_seq = unix_ms, seq

    value = (unix_ms & 0xFFFF_FFFF_FFFF) << 80
    value |= 0x7 << 76
    value |= seq << 64
    # RFC 4122 variant in bits 62..63, random rand_b below
    value |= 0x2 << 62
    value |= int.from_bytes(os.urandom(8), "big") & ((1 << 62) - 1)
    return uuid.UUID(int=value)


@dataclass
class Subscription:
    id: uuid.UUID
    service_name: str
    price_rub: int
    started_at: datetime
    owner: uuid.UUID
    completed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        owner: uuid.UUID,
        price_rub: int,
        service_name: str,
        start_time: datetime,
        end_time: Optional[datetime] = None,
    ) -> "Subscription":
        """Build a new subscription with a freshly generated id.

        Rules are checked in a fixed order and the first violation is
        reported: start time not in the future, owner provided, service
        name not blank, price not negative, end time not before start.
        """
        start_time = to_utc(start_time)
        if utcnow() < start_time:
            raise SubscriptionValidationError(_CREATE_PREFIX + "date has not come yet")

        if owner == NIL_UUID:
            raise SubscriptionValidationError(_CREATE_PREFIX + "user id was not provided")

        service_name = service_name.strip()
        if not service_name:
            raise SubscriptionValidationError(_CREATE_PREFIX + "subscribed service is not provided")

        if price_rub < 0:
            raise SubscriptionValidationError(_CREATE_PREFIX + "invalid subscription price")

        if end_time is not None:
            end_time = to_utc(end_time)
            if end_time < start_time:
                raise SubscriptionValidationError(
                    _CREATE_PREFIX + "start time must be less than end time"
                )

        return cls(
            id=new_subscription_id(),
            service_name=service_name,
            price_rub=price_rub,
            started_at=start_time,
            owner=owner,
            completed_at=end_time,
        )

    def is_completed(self) -> bool:
        return self.completed_at is not None

    def change_service_name(self, service_name: str) -> None:
        # Unlike ``create`` the name is stored as given, without trimming.
        if service_name == "":
            raise SubscriptionValidationError(_UPDATE_PREFIX + "subscribed service is not provided")
        self.service_name = service_name

    def reset_end_time(self) -> None:
        self.completed_at = None

    def change_start_time(self, start_time: datetime) -> None:
        start_time = to_utc(start_time)
        if self.completed_at is not None and start_time > self.completed_at:
            raise SubscriptionValidationError(
                _UPDATE_PREFIX + "start time must be less than end time"
            )
        if utcnow() < start_time:
            raise SubscriptionValidationError(_UPDATE_PREFIX + "date has not come yet")
        self.started_at = start_time

    def change_end_time(self, end_time: datetime) -> None:
        end_time = to_utc(end_time)
        if self.started_at > end_time:
            raise SubscriptionValidationError(
                _UPDATE_PREFIX + "start time must be less than end time"
            )
        self.completed_at = end_time

    def change_owner(self, owner: uuid.UUID) -> None:
        if owner == NIL_UUID:
            raise SubscriptionValidationError(_UPDATE_PREFIX + "user id was not provided")
        self.owner = owner

    def change_price(self, price_rub: int) -> None:
        if price_rub < 0:
            raise SubscriptionValidationError(_UPDATE_PREFIX + "invalid subscription price")
        self.price_rub = price_rub
