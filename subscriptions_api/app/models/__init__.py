"""Domain entities."""

from .subscription import Subscription, SubscriptionValidationError  # noqa: F401
