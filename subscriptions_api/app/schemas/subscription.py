"""
Pydantic models for subscription payloads.

Dates are exchanged as calendar dates (``YYYY-MM-DD``).  A date is
interpreted as midnight UTC when it is handed to the service layer,
and stored timestamps are reported back as their UTC date.
"""

from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from subscriptions_api.app.models.subscription import Subscription


def date_to_utc(value: Optional[date]) -> Optional[datetime]:
    """Return midnight UTC of ``value`` (``None`` passes through)."""
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class SubscriptionBase(BaseModel):
    user_id: UUID = Field(..., examples=["60601fee-2bf1-4721-ae6f-7636e79a0cba"])
    service_name: str = Field(..., examples=["Yandex Plus"])
    price: int = Field(..., description="Monthly price in roubles", examples=[400])
    start_date: date = Field(..., examples=["2025-07-01"])
    end_date: Optional[date] = Field(None, examples=["2025-12-01"])


class SubscriptionCreate(SubscriptionBase):
    """Schema for creating a subscription."""
    pass


class SubscriptionUpdate(SubscriptionBase):
    """Schema for updating a subscription.

    The update replaces every field.  Omitting ``end_date`` marks the
    subscription as still active.
    """
    pass


class SubscriptionRead(SubscriptionBase):
    """Schema for reading a subscription from the API."""

    id: UUID

    @classmethod
    def from_entity(cls, subscription: Subscription) -> "SubscriptionRead":
        return cls(
            id=subscription.id,
            user_id=subscription.owner,
            service_name=subscription.service_name,
            price=subscription.price_rub,
            start_date=subscription.started_at.date(),
            end_date=subscription.completed_at.date() if subscription.is_completed() else None,
        )


class TotalCostRead(BaseModel):
    total_cost: int = Field(..., description="Sum of matching subscription prices in roubles")
