"""
Subscription channel interface
"""

from abc import ABC, abstractmethod
from typing import Any, Sequence

from ..database.models import ChannelType
from ..subscription.types import DeliveryResult, PageUpdate, Subscription
from ..subscription.validation import ConfigValidation


class SubscriptionChannel(ABC):
    """Delivery transport for subscriber notifications"""

    channel_type: ChannelType

    @abstractmethod
    def validate_config(self, value: Any) -> ConfigValidation:
        """Validate channel-specific input"""
        pass

    @abstractmethod
    async def send_verification(self, subscription: Subscription, verify_url: str) -> None:
        """Send a one-off verification message; raises ChannelDeliveryError on failure"""
        pass

    @abstractmethod
    async def send_notifications(
        self,
        subscriptions: Sequence[Subscription],
        page_update: PageUpdate
    ) -> list[DeliveryResult]:
        """Notify every subscription of page_update; one recipient's failure never stops the rest"""
        pass
