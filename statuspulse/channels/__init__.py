"""
Notification channels
"""

from .base import SubscriptionChannel
from ..subscription.validation import (
    ConfigValidation,
    WebhookChannelConfig,
    validate_email_config,
    validate_webhook_config,
)
from .email import EmailChannel
from .webhook import WebhookChannel
from .registry import ChannelRegistry, build_default_registry

__all__ = [
    "SubscriptionChannel",
    "ConfigValidation",
    "WebhookChannelConfig",
    "validate_email_config",
    "validate_webhook_config",
    "EmailChannel",
    "WebhookChannel",
    "ChannelRegistry",
    "build_default_registry",
]
