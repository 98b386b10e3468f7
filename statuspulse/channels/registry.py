"""
Channel registry - channel type -> channel implementation
"""

from typing import Optional, Union

import httpx

from ..database.models import ChannelType
from ..mailer.client import EmailClient
from .base import SubscriptionChannel
from .email import EmailChannel
from .webhook import WebhookChannel


class ChannelRegistry:
    """Resolves a channel type to its implementation; unknown types resolve to None"""

    def __init__(self, channels: Optional[list[SubscriptionChannel]] = None):
        self._channels: dict[str, SubscriptionChannel] = {}
        for channel in channels or []:
            self.register(channel)

    def register(self, channel: SubscriptionChannel) -> None:
        self._channels[channel.channel_type.value] = channel

    def get(self, channel_type: Union[str, ChannelType]) -> Optional[SubscriptionChannel]:
        if isinstance(channel_type, ChannelType):
            channel_type = channel_type.value
        return self._channels.get(channel_type)


def build_default_registry(
    email_client: Optional[EmailClient] = None,
    http_client: Optional[httpx.AsyncClient] = None
) -> ChannelRegistry:
    """Registry with the email and webhook channels wired to the given clients"""
    return ChannelRegistry([
        EmailChannel(email_client or EmailClient()),
        WebhookChannel(http_client),
    ])
