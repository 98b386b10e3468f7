"""
Webhook channel
"""

import asyncio
import json
import logging
from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError

from ..config import settings
from ..database.models import ChannelType
from ..subscription.errors import ChannelDeliveryError
from ..subscription.types import DeliveryResult, PageUpdate, Subscription, WebhookSubscription
from .base import SubscriptionChannel
from ..subscription.validation import ConfigValidation, WebhookChannelConfig, validate_webhook_config

logger = logging.getLogger(__name__)

USER_AGENT = "StatusPulse-Webhooks/1.0"


def default_headers() -> httpx.Headers:
    """Case-insensitive header set; custom headers with the same name replace these"""
    return httpx.Headers({
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    })


def recipient_label(subscription: Subscription) -> str:
    """Identifies a webhook recipient in logs and results without exposing its URL"""
    return f"webhook subscription {subscription.id}"


def parse_channel_config(subscription: WebhookSubscription) -> WebhookChannelConfig:
    """Stored config of a subscription; malformed config counts as empty"""
    if not subscription.channel_config:
        return WebhookChannelConfig()

    try:
        return WebhookChannelConfig.model_validate(json.loads(subscription.channel_config))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid channel_config for subscription {subscription.id}: {e}")
        return WebhookChannelConfig()


def build_page_update_payload(subscription: Subscription, page_update: PageUpdate) -> dict:
    return {
        "type": "page_update",
        "page": {"id": subscription.page_id, "name": subscription.page_name},
        "update": {
            "id": page_update.id,
            "title": page_update.title,
            "status": page_update.status.value,
            "message": page_update.message,
            "pageComponents": list(page_update.page_components),
            "date": page_update.date,
        },
    }


class WebhookChannel(SubscriptionChannel):
    """POSTs JSON payloads to subscriber endpoints"""

    channel_type = ChannelType.WEBHOOK

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = None):
        """
        Args:
            client: shared HTTP client; a short-lived one is created per send when omitted
            timeout: per-request timeout in seconds (default WEBHOOK_TIMEOUT_SECONDS, 10s)
        """
        self.client = client
        self.timeout = timeout or settings.webhook_timeout_seconds

    def validate_config(self, value: Any) -> ConfigValidation:
        return validate_webhook_config(value)

    async def send_verification(self, subscription: Subscription, verify_url: str) -> None:
        if not isinstance(subscription, WebhookSubscription) or not subscription.webhook_url:
            raise ChannelDeliveryError("Webhook URL is required for webhook channel")

        payload = {
            "type": "verification",
            "token": subscription.token,
            "verifyUrl": verify_url,
        }
        await self._post(subscription.webhook_url, payload, default_headers())
        logger.info(f"Webhook verification sent: subscription {subscription.id}")

    async def send_notifications(
        self,
        subscriptions: Sequence[Subscription],
        page_update: PageUpdate
    ) -> list[DeliveryResult]:
        """One concurrent POST per subscriber, each with its own timeout"""
        targets = [
            s for s in subscriptions
            if isinstance(s, WebhookSubscription) and s.webhook_url
        ]
        if not targets:
            return []

        outcomes = await asyncio.gather(
            *(self._notify(s, page_update) for s in targets),
            return_exceptions=True,
        )

        results = []
        for subscription, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Failed to send webhook notification to {recipient_label(subscription)}: {outcome}")
                results.append(DeliveryResult(
                    recipient=recipient_label(subscription),
                    success=False,
                    error_message=str(outcome)
                ))
            else:
                results.append(DeliveryResult(recipient=recipient_label(subscription), success=True))

        success_count = sum(1 for r in results if r.success)
        logger.info(f"Webhook batch sent: {success_count}/{len(results)} succeeded")
        return results

    async def _notify(self, subscription: WebhookSubscription, page_update: PageUpdate) -> None:
        config = parse_channel_config(subscription)

        headers = default_headers()
        for header in config.headers or []:
            headers[header.key] = header.value

        payload = build_page_update_payload(subscription, page_update)
        await self._post(subscription.webhook_url, payload, headers)

    async def _post(self, url: str, payload: dict, headers: httpx.Headers) -> None:
        body = json.dumps(payload)
        try:
            if self.client is not None:
                response = await self.client.post(url, content=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, content=body, headers=headers)
        except httpx.HTTPError as e:
            raise ChannelDeliveryError(f"Webhook request failed: {e!r}") from e

        if not response.is_success:
            raise ChannelDeliveryError(
                f"Webhook returned {response.status_code} {response.reason_phrase}"
            )
