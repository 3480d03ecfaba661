"""Tests for SubscriptionService against SQLite and against failing storage."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from subscriptions_api.app.models.subscription import NIL_UUID, Subscription
from subscriptions_api.app.repositories.subscription_repository import (
    RepositoryError,
    SubscriptionNotFoundError,
    SubscriptionRepository,
)
from subscriptions_api.app.services.errors import (
    ErrorCode,
    InternalError,
    InvalidInputError,
    NotFoundError,
)
from subscriptions_api.app.services.subscription_service import (
    CreateSubscriptionArgs,
    SubscriptionService,
    UpdateSubscriptionArgs,
)


def utc(year, month, day):
    return datetime(year, month, day, tzinfo=timezone.utc)


def create_args(owner, name="Netflix", price=500, start=None, end=None):
    return CreateSubscriptionArgs(
        user_id=owner,
        service_name=name,
        price_rub=price,
        start_time=start or utc(2023, 1, 1),
        end_time=end,
    )


def update_args(sub_id, owner, name="Netflix", price=500, start=None, end=None):
    return UpdateSubscriptionArgs(
        subscription_id=sub_id,
        user_id=owner,
        service_name=name,
        price_rub=price,
        start_time=start or utc(2023, 1, 1),
        end_time=end,
    )


@pytest.fixture
def failing_repository():
    repository = MagicMock(spec=SubscriptionRepository)
    error = RepositoryError("connection refused")
    repository.add.side_effect = error
    repository.update.side_effect = error
    repository.remove_by_id.side_effect = error
    repository.find_by_id.side_effect = error
    repository.find.side_effect = error
    return repository


class TestCreateAndFind:
    @pytest.mark.asyncio
    async def test_create_then_find_round_trips(self, service, owner):
        created = await service.create_subscription(create_args(owner))

        found = await service.find_subscription_by_id(created.id)

        assert found == created
        assert not found.is_completed()

    @pytest.mark.asyncio
    async def test_future_start_is_invalid_input(self, service, owner):
        args = create_args(owner, start=utc(2030, 1, 1))
        with pytest.raises(InvalidInputError) as exc_info:
            await service.create_subscription(args)
        assert "date has not come yet" in exc_info.value.message
        assert exc_info.value.code is ErrorCode.INVALID_INPUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_owner", [NIL_UUID, None])
    async def test_missing_owner_is_invalid_input(self, service, bad_owner):
        with pytest.raises(InvalidInputError, match="user id was not provided"):
            await service.create_subscription(create_args(bad_owner))

    @pytest.mark.asyncio
    async def test_negative_price_is_invalid_input(self, service, owner):
        with pytest.raises(InvalidInputError):
            await service.create_subscription(create_args(owner, price=-1))

    @pytest.mark.asyncio
    async def test_find_missing_is_not_found(self, service):
        with pytest.raises(NotFoundError, match="subscription not found"):
            await service.find_subscription_by_id(uuid.uuid4())


class TestUpdate:
    @pytest.mark.asyncio
    async def test_setting_end_date_completes_subscription(self, service, owner):
        created = await service.create_subscription(create_args(owner))

        updated = await service.update_subscription(
            update_args(created.id, owner, end=utc(2023, 6, 1))
        )

        assert updated.is_completed()
        assert updated.completed_at == utc(2023, 6, 1)
        found = await service.find_subscription_by_id(created.id)
        assert found.completed_at == utc(2023, 6, 1)

    @pytest.mark.asyncio
    async def test_omitting_end_date_clears_it(self, service, owner):
        created = await service.create_subscription(create_args(owner, end=utc(2023, 6, 1)))

        updated = await service.update_subscription(update_args(created.id, owner))

        assert not updated.is_completed()
        assert not (await service.find_subscription_by_id(created.id)).is_completed()

    @pytest.mark.asyncio
    async def test_replaces_all_fields(self, service, owner):
        created = await service.create_subscription(create_args(owner))
        new_owner = uuid.uuid4()

        await service.update_subscription(
            update_args(created.id, new_owner, name="Spotify", price=199, start=utc(2023, 2, 1))
        )

        found = await service.find_subscription_by_id(created.id)
        assert found.owner == new_owner
        assert found.service_name == "Spotify"
        assert found.price_rub == 199
        assert found.started_at == utc(2023, 2, 1)

    @pytest.mark.asyncio
    async def test_new_start_may_pass_old_end(self, service, owner):
        # The end time is cleared before the start changes, so moving the
        # start past the previous end is accepted.
        created = await service.create_subscription(create_args(owner, end=utc(2023, 2, 1)))

        updated = await service.update_subscription(
            update_args(created.id, owner, start=utc(2023, 3, 1))
        )

        assert updated.started_at == utc(2023, 3, 1)
        assert updated.completed_at is None

    @pytest.mark.asyncio
    async def test_invalid_update_persists_nothing(self, service, owner):
        created = await service.create_subscription(create_args(owner, end=utc(2023, 6, 1)))

        with pytest.raises(InvalidInputError, match="subscribed service is not provided"):
            await service.update_subscription(
                update_args(created.id, uuid.uuid4(), name="", price=1, start=utc(2023, 2, 1))
            )

        assert await service.find_subscription_by_id(created.id) == created

    @pytest.mark.asyncio
    async def test_end_before_start_is_invalid(self, service, owner):
        created = await service.create_subscription(create_args(owner))
        with pytest.raises(InvalidInputError, match="start time must be less than end time"):
            await service.update_subscription(
                update_args(created.id, owner, start=utc(2023, 5, 1), end=utc(2023, 4, 1))
            )

    @pytest.mark.asyncio
    async def test_missing_subscription_is_not_found(self, service, owner):
        with pytest.raises(NotFoundError):
            await service.update_subscription(update_args(uuid.uuid4(), owner))

    @pytest.mark.asyncio
    async def test_concurrent_removal_is_not_found(self, owner):
        repository = MagicMock(spec=SubscriptionRepository)
        repository.find_by_id.return_value = Subscription.create(owner, 1, "Netflix", utc(2023, 1, 1))
        repository.update.side_effect = SubscriptionNotFoundError("gone")

        with pytest.raises(NotFoundError):
            await SubscriptionService(repository).update_subscription(
                update_args(repository.find_by_id.return_value.id, owner)
            )


class TestRemoveAndList:
    @pytest.mark.asyncio
    async def test_removed_subscription_is_not_found(self, service, owner):
        created = await service.create_subscription(create_args(owner))

        await service.remove_subscription(created.id)

        with pytest.raises(NotFoundError):
            await service.find_subscription_by_id(created.id)
        assert await service.get_subscriptions() == []

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, service, owner):
        created = await service.create_subscription(create_args(owner))

        await service.remove_subscription(created.id)
        await service.remove_subscription(created.id)
        await service.remove_subscription(uuid.uuid4())

        assert await service.get_subscriptions() == []

    @pytest.mark.asyncio
    async def test_list_returns_live_subscriptions(self, service, owner):
        first = await service.create_subscription(create_args(owner, name="A"))
        second = await service.create_subscription(create_args(owner, name="B"))
        third = await service.create_subscription(create_args(owner, name="C"))
        await service.remove_subscription(second.id)

        listed = await service.get_subscriptions()

        assert {s.id for s in listed} == {first.id, third.id}


class TestTotalPrice:
    @pytest.mark.asyncio
    async def test_sums_matching_prices(self, service, owner):
        await service.create_subscription(create_args(owner, name="X", price=100))
        await service.create_subscription(create_args(owner, name="X", price=200))
        await service.create_subscription(create_args(owner, name="Y", price=1000))
        await service.create_subscription(create_args(uuid.uuid4(), name="X", price=1000))

        total = await service.calculate_total_price(owner, "X")

        assert total.total_price_rub == 300

    @pytest.mark.asyncio
    async def test_no_matches_is_zero(self, service, owner):
        total = await service.calculate_total_price(owner, "Nothing")
        assert total.total_price_rub == 0

    @pytest.mark.asyncio
    async def test_deleted_subscriptions_excluded(self, service, owner):
        keep = await service.create_subscription(create_args(owner, name="X", price=100))
        drop = await service.create_subscription(create_args(owner, name="X", price=200))
        await service.remove_subscription(drop.id)

        total = await service.calculate_total_price(owner, "X")

        assert total.total_price_rub == keep.price_rub

    @pytest.mark.asyncio
    async def test_window_filters_on_start_time(self, service, owner):
        await service.create_subscription(create_args(owner, name="X", price=100, start=utc(2023, 1, 1)))
        await service.create_subscription(create_args(owner, name="X", price=200, start=utc(2023, 3, 1)))
        await service.create_subscription(create_args(owner, name="X", price=400, start=utc(2023, 7, 1)))

        total = await service.calculate_total_price(owner, "X", utc(2023, 2, 1), utc(2023, 6, 30))

        assert total.total_price_rub == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [None, NIL_UUID])
    async def test_user_id_required(self, service, user_id):
        with pytest.raises(InvalidInputError, match="user_id is required"):
            await service.calculate_total_price(user_id, "X")

    @pytest.mark.asyncio
    async def test_service_name_required(self, service, owner):
        with pytest.raises(InvalidInputError, match="service_name is required"):
            await service.calculate_total_price(owner, "")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("end", [utc(2023, 1, 1), utc(2022, 12, 31)])
    async def test_end_must_follow_start(self, service, owner, end):
        with pytest.raises(InvalidInputError, match="end time must be after start time"):
            await service.calculate_total_price(owner, "X", utc(2023, 1, 1), end)


class TestStorageFailures:
    @pytest.mark.asyncio
    async def test_create_is_internal(self, failing_repository, owner):
        with pytest.raises(InternalError) as exc_info:
            await SubscriptionService(failing_repository).create_subscription(create_args(owner))
        assert exc_info.value.message == "failed to create subscription"
        assert "connection refused" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_find_is_internal(self, failing_repository):
        with pytest.raises(InternalError):
            await SubscriptionService(failing_repository).find_subscription_by_id(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_update_is_internal(self, failing_repository, owner):
        with pytest.raises(InternalError, match="failed to update subscription"):
            await SubscriptionService(failing_repository).update_subscription(
                update_args(uuid.uuid4(), owner)
            )

    @pytest.mark.asyncio
    async def test_remove_is_internal(self, failing_repository):
        with pytest.raises(InternalError):
            await SubscriptionService(failing_repository).remove_subscription(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_total_is_internal(self, failing_repository, owner):
        with pytest.raises(InternalError, match="failed to calculate total cost"):
            await SubscriptionService(failing_repository).calculate_total_price(owner, "X")

    @pytest.mark.asyncio
    async def test_list_falls_back_to_empty(self, failing_repository):
        assert await SubscriptionService(failing_repository).get_subscriptions() == []

    @pytest.mark.asyncio
    async def test_invalid_input_checked_before_storage(self, failing_repository, owner):
        service = SubscriptionService(failing_repository)
        with pytest.raises(InvalidInputError):
            await service.create_subscription(create_args(owner, price=-1))
        failing_repository.add.assert_not_called()
