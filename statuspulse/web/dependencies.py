"""FastAPI dependencies"""

from fastapi import Request

from ..channels.registry import ChannelRegistry
from ..dispatcher import NotificationDispatcher
from ..subscription.manager import SubscriptionManager


def get_manager() -> SubscriptionManager:
    return SubscriptionManager()


def get_registry(request: Request) -> ChannelRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return NotificationDispatcher(request.app.state.registry)
