"""
Verification message sending
"""

import logging

from ..database import SubscriberRepository, get_session
from ..utils import verify_url
from .errors import ChannelDeliveryError, SubscriptionAlreadyVerifiedError, SubscriptionNotFoundError
from .manager import to_subscription

logger = logging.getLogger(__name__)


async def send_subscription_verification(subscriber_id: int, token: str, registry) -> str:
    """
    Send the verification message of a pending subscription through its channel

    Args:
        subscriber_id: subscriber row id
        token: the row's token; both must match
        registry: ChannelRegistry resolving the subscriber's channel

    Returns:
        The verification URL that was sent

    Raises:
        SubscriptionNotFoundError, SubscriptionAlreadyVerifiedError, ChannelDeliveryError
    """
    with get_session() as session:
        subscriber = SubscriberRepository.get_by_id_and_token(session, subscriber_id, token)
        if subscriber is None:
            raise SubscriptionNotFoundError("Subscriber not found")

        if subscriber.accepted_at is not None:
            raise SubscriptionAlreadyVerifiedError()

        subscription = to_subscription(subscriber, subscriber.page)

    channel = registry.get(subscription.channel_type)
    if channel is None:
        raise ChannelDeliveryError(f"Unknown channel type: {subscription.channel_type}")

    link = verify_url(subscription.page_slug, subscription.custom_domain, subscription.token)
    await channel.send_verification(subscription, link)

    logger.info(f"Verification sent: subscriber={subscriber_id}, channel={subscription.channel_type.value}")
    return link
