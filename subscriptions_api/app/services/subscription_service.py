"""
Service layer for subscriptions.

``SubscriptionService`` validates input through the ``Subscription``
entity, persists changes through a ``SubscriptionRepository`` and
translates failures into the errors of ``services.errors``:

* entity validation failures become ``InvalidInputError`` carrying the
  human‑readable reason;
* a missing subscription becomes ``NotFoundError``;
* any other storage failure becomes ``InternalError`` with a generic
  message, the underlying error is logged.

Each request works on its own copy of the entity loaded from storage;
nothing is cached between calls.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from subscriptions_api.app.models.subscription import (
    NIL_UUID,
    Subscription,
    SubscriptionValidationError,
    to_utc,
)
from subscriptions_api.app.repositories.subscription_repository import (
    RepositoryError,
    SubscriptionNotFoundError,
    SubscriptionRepository,
    SubscriptionsFilter,
)
from subscriptions_api.app.services.errors import InternalError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class CreateSubscriptionArgs:
    user_id: uuid.UUID
    service_name: str
    price_rub: int
    start_time: datetime
    end_time: Optional[datetime] = None


@dataclass
class UpdateSubscriptionArgs:
    subscription_id: uuid.UUID
    user_id: uuid.UUID
    service_name: str
    price_rub: int
    start_time: datetime
    end_time: Optional[datetime] = None


@dataclass
class TotalPrice:
    total_price_rub: int = 0


class SubscriptionService:
    """Application service for managing subscriptions."""

    def __init__(self, repository: SubscriptionRepository) -> None:
        self.repository = repository

    async def create_subscription(self, args: CreateSubscriptionArgs) -> Subscription:
        try:
            subscription = Subscription.create(
                args.user_id or NIL_UUID,
                args.price_rub,
                args.service_name,
                args.start_time,
                args.end_time,
            )
        except SubscriptionValidationError as exc:
            logger.debug("Validation failed: %s", exc)
            raise InvalidInputError(str(exc)) from exc

        try:
            self.repository.add(subscription)
        except RepositoryError as exc:
            logger.error("Failed to add subscription %s: %s", subscription.id, exc)
            raise InternalError("failed to create subscription") from exc

        logger.info("Subscription %s created", subscription.id)
        return subscription

    async def update_subscription(self, args: UpdateSubscriptionArgs) -> Subscription:
        """Replace owner, service, price and dates of an existing subscription.

        The end time is always cleared before the new values are applied,
        so omitting it from ``args`` makes the subscription active again.
        Nothing is persisted unless every change passes validation.
        """
        subscription = self._load(args.subscription_id, "failed to update subscription")

        try:
            subscription.change_owner(args.user_id or NIL_UUID)
            subscription.reset_end_time()
            subscription.change_start_time(args.start_time)
            if args.end_time is not None:
                subscription.change_end_time(args.end_time)
            subscription.change_price(args.price_rub)
            subscription.change_service_name(args.service_name)
        except SubscriptionValidationError as exc:
            logger.warning("Invalid update for subscription %s: %s", args.subscription_id, exc)
            raise InvalidInputError(str(exc)) from exc

        try:
            self.repository.update(subscription)
        except SubscriptionNotFoundError as exc:
            # Removed by a concurrent request between load and update.
            logger.warning("Subscription %s not found", subscription.id)
            raise NotFoundError("subscription not found") from exc
        except RepositoryError as exc:
            logger.error("Failed to update subscription %s: %s", subscription.id, exc)
            raise InternalError("failed to update subscription") from exc

        logger.info("Subscription %s updated", subscription.id)
        return subscription

    async def find_subscription_by_id(self, subscription_id: uuid.UUID) -> Subscription:
        subscription = self._load(subscription_id, "failed to fetch subscription")
        logger.info("Subscription %s fetched", subscription_id)
        return subscription

    async def get_subscriptions(self) -> List[Subscription]:
        """Return every live subscription.

        Storage failures are logged and reported as an empty list.
        """
        try:
            subscriptions = self.repository.find(SubscriptionsFilter())
        except RepositoryError as exc:
            logger.error("Failed to fetch subscriptions: %s", exc)
            return []
        logger.info("Fetched %d subscriptions", len(subscriptions))
        return subscriptions

    async def remove_subscription(self, subscription_id: uuid.UUID) -> None:
        try:
            self.repository.remove_by_id(subscription_id)
        except RepositoryError as exc:
            logger.error("Failed to remove subscription %s: %s", subscription_id, exc)
            raise InternalError("failed to remove subscription") from exc
        logger.info("Subscription %s removed", subscription_id)

    async def calculate_total_price(
        self,
        user_id: Optional[uuid.UUID],
        service_name: Optional[str],
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> TotalPrice:
        """Sum ``price_rub`` of a user's live subscriptions to one service.

        ``start_time`` and ``end_time`` bound the subscriptions' start
        time.  When both are given the end must be strictly later.
        """
        if user_id is None or user_id == NIL_UUID:
            logger.warning("Invalid input: user_id is empty")
            raise InvalidInputError("user_id is required")
        if not service_name:
            logger.warning("Invalid input: service_name is empty")
            raise InvalidInputError("service_name is required")
        if start_time is not None and end_time is not None and not to_utc(end_time) > to_utc(start_time):
            logger.warning("Invalid input: end time must be after start time")
            raise InvalidInputError("end time must be after start time")

        subscriptions_filter = SubscriptionsFilter(
            owner_id=user_id,
            service_name=service_name,
            start_time=start_time,
            end_time=end_time,
        )
        try:
            subscriptions = self.repository.find(subscriptions_filter)
        except RepositoryError as exc:
            logger.error("Failed to fetch subscriptions of %s: %s", user_id, exc)
            raise InternalError("failed to calculate total cost") from exc

        total = TotalPrice(total_price_rub=sum(s.price_rub for s in subscriptions))
        logger.info("Total cost for %s / %s is %d", user_id, service_name, total.total_price_rub)
        return total

    def _load(self, subscription_id: uuid.UUID, failure_message: str) -> Subscription:
        try:
            return self.repository.find_by_id(subscription_id)
        except SubscriptionNotFoundError as exc:
            logger.warning("Subscription %s not found", subscription_id)
            raise NotFoundError("subscription not found") from exc
        except RepositoryError as exc:
            logger.error("Failed to find subscription %s: %s", subscription_id, exc)
            raise InternalError(failure_message) from exc
