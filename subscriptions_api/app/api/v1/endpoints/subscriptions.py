"""
Subscription endpoints for API v1.

These routes expose CRUD operations for subscriptions and the total
cost report.  Service errors are mapped onto HTTP status codes by
``_raise_http_error``: invalid input → 400, not found → 404, anything
else → 500 with a generic message.
"""

import logging
from datetime import date
from typing import List, NoReturn, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from subscriptions_api.app.repositories.subscription_repository import SQLiteSubscriptionRepository
from subscriptions_api.app.schemas.subscription import (
    SubscriptionCreate,
    SubscriptionRead,
    SubscriptionUpdate,
    TotalCostRead,
    date_to_utc,
)
from subscriptions_api.app.services.errors import (
    InvalidInputError,
    NotFoundError,
    ServiceError,
)
from subscriptions_api.app.services.subscription_service import (
    CreateSubscriptionArgs,
    SubscriptionService,
    UpdateSubscriptionArgs,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_subscription_service() -> SubscriptionService:
    """Build the service for one request."""
    return SubscriptionService(SQLiteSubscriptionRepository())


def _raise_http_error(exc: ServiceError) -> NoReturn:
    if isinstance(exc, InvalidInputError):
        logger.warning("Invalid input: %s", exc.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message) from exc
    if isinstance(exc, NotFoundError):
        logger.warning("Resource not found: %s", exc.message)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message) from exc
    logger.error("Internal error: %s", exc.message)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal server error"
    ) from exc


@router.get("/", response_model=List[SubscriptionRead])
async def list_subscriptions(
    service: SubscriptionService = Depends(get_subscription_service),
) -> List[SubscriptionRead]:
    """Return every subscription that has not been deleted, ordered by id."""
    subscriptions = await service.get_subscriptions()
    return [SubscriptionRead.from_entity(s) for s in subscriptions]


@router.post("/", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
async def create_subscription(
    subscription_in: SubscriptionCreate,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionRead:
    """Create a new subscription.

    The start date must not be in the future and the end date, if
    given, must not precede it.
    """
    args = CreateSubscriptionArgs(
        user_id=subscription_in.user_id,
        service_name=subscription_in.service_name,
        price_rub=subscription_in.price,
        start_time=date_to_utc(subscription_in.start_date),
        end_time=date_to_utc(subscription_in.end_date),
    )
    try:
        subscription = await service.create_subscription(args)
    except ServiceError as exc:
        _raise_http_error(exc)
    return SubscriptionRead.from_entity(subscription)


# Declared before ``/{subscription_id}`` so that "total-cost" is not
# parsed as an id.
@router.get("/total-cost", response_model=TotalCostRead)
async def get_total_cost(
    user_id: Optional[UUID] = Query(None),
    service_name: str = Query(""),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: SubscriptionService = Depends(get_subscription_service),
) -> TotalCostRead:
    """Sum the prices of a user's subscriptions to one service.

    - **user_id**, **service_name**: required.
    - **start_date**, **end_date**: optional bounds on the
      subscriptions' start date; ``end_date`` must be after
      ``start_date`` when both are given.
    """
    try:
        total = await service.calculate_total_price(
            user_id,
            service_name,
            date_to_utc(start_date),
            date_to_utc(end_date),
        )
    except ServiceError as exc:
        _raise_http_error(exc)
    return TotalCostRead(total_cost=total.total_price_rub)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
async def get_subscription(
    subscription_id: UUID,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionRead:
    """Retrieve a single subscription.  Raises 404 if it does not exist."""
    try:
        subscription = await service.find_subscription_by_id(subscription_id)
    except ServiceError as exc:
        _raise_http_error(exc)
    return SubscriptionRead.from_entity(subscription)


@router.patch("/{subscription_id}", response_model=SubscriptionRead)
async def update_subscription(
    subscription_id: UUID,
    subscription_in: SubscriptionUpdate,
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionRead:
    """Replace the fields of an existing subscription.

    Every field is overwritten; a missing ``end_date`` clears the end
    date of the stored subscription.
    """
    args = UpdateSubscriptionArgs(
        subscription_id=subscription_id,
        user_id=subscription_in.user_id,
        service_name=subscription_in.service_name,
        price_rub=subscription_in.price,
        start_time=date_to_utc(subscription_in.start_date),
        end_time=date_to_utc(subscription_in.end_date),
    )
    try:
        subscription = await service.update_subscription(args)
    except ServiceError as exc:
        _raise_http_error(exc)
    return SubscriptionRead.from_entity(subscription)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: UUID,
    service: SubscriptionService = Depends(get_subscription_service),
) -> None:
    """Delete a subscription.  The record is kept in storage but hidden.

    Deleting an unknown or already deleted id also answers 204.
    """
    try:
        await service.remove_subscription(subscription_id)
    except ServiceError as exc:
        _raise_http_error(exc)
    return None
