"""
Subscription lifecycle
"""

from .errors import (
    SubscriptionError,
    InvalidComponentsError,
    InvalidChannelConfigError,
    SubscriptionNotFoundError,
    PageNotFoundError,
    SubscriptionStateError,
    SubscriptionExpiredError,
    SubscriptionNotVerifiedError,
    SubscriptionUnsubscribedError,
    SubscriptionAlreadyVerifiedError,
    SubscriptionConflictError,
    ChannelDeliveryError,
)
from .types import (
    Subscription,
    EmailSubscription,
    WebhookSubscription,
    PageUpdate,
    DeliveryResult,
    SubscriberListEntry,
)
from .manager import SubscriptionManager, mask_email, to_subscription
from .verification import send_subscription_verification

__all__ = [
    "SubscriptionError",
    "InvalidComponentsError",
    "InvalidChannelConfigError",
    "SubscriptionNotFoundError",
    "PageNotFoundError",
    "SubscriptionStateError",
    "SubscriptionExpiredError",
    "SubscriptionNotVerifiedError",
    "SubscriptionUnsubscribedError",
    "SubscriptionAlreadyVerifiedError",
    "SubscriptionConflictError",
    "ChannelDeliveryError",
    "Subscription",
    "EmailSubscription",
    "WebhookSubscription",
    "PageUpdate",
    "DeliveryResult",
    "SubscriberListEntry",
    "SubscriptionManager",
    "mask_email",
    "to_subscription",
    "send_subscription_verification",
]
