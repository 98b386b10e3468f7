"""
Email channel
"""

import logging
from typing import Any, Sequence

from ..database.models import ChannelType
from ..mailer.client import EmailClient, EmailRecipient
from ..subscription.errors import ChannelDeliveryError
from ..subscription.types import DeliveryResult, EmailSubscription, PageUpdate, Subscription
from .base import SubscriptionChannel
from ..subscription.validation import ConfigValidation, validate_email_config

logger = logging.getLogger(__name__)


class EmailChannel(SubscriptionChannel):
    """Delivers verification and status update emails through an EmailClient"""

    channel_type = ChannelType.EMAIL

    def __init__(self, client: EmailClient):
        self.client = client

    def validate_config(self, value: Any) -> ConfigValidation:
        return validate_email_config(value)

    async def send_verification(self, subscription: Subscription, verify_url: str) -> None:
        if not isinstance(subscription, EmailSubscription) or not subscription.email:
            raise ChannelDeliveryError("Email is required for email channel")

        await self.client.send_page_subscription(
            to=subscription.email,
            link=verify_url,
            page=subscription.page_name,
        )

    async def send_notifications(
        self,
        subscriptions: Sequence[Subscription],
        page_update: PageUpdate
    ) -> list[DeliveryResult]:
        """One batched client call for every subscriber with an address and a token"""
        recipients = [
            s for s in subscriptions
            if isinstance(s, EmailSubscription) and s.email and s.token
        ]
        if not recipients:
            return []

        first = recipients[0]
        return await self.client.send_status_report_update(
            subscribers=[EmailRecipient(email=s.email, token=s.token) for s in recipients],
            page_title=first.page_name,
            page_slug=first.page_slug,
            custom_domain=first.custom_domain,
            report_title=page_update.title,
            status=page_update.status.value,
            message=page_update.message,
            date=page_update.date,
            page_components=page_update.page_components,
        )
