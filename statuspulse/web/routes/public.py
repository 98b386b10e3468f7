"""Public Routes - subscribe, verify, manage and unsubscribe links"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field, PositiveInt

from ...channels.registry import ChannelRegistry
from ...subscription.errors import SubscriptionError
from ...subscription.manager import SubscriptionManager
from ...subscription.verification import send_subscription_verification
from ..dependencies import get_manager, get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions")


class SubscribeRequest(BaseModel):
    email: EmailStr
    page_id: PositiveInt
    component_ids: Optional[list[PositiveInt]] = None


class WebhookSubscribeRequest(BaseModel):
    webhook_url: str
    page_id: PositiveInt
    component_ids: Optional[list[PositiveInt]] = None
    channel_config: Optional[dict] = None


class TokenRequest(BaseModel):
    token: str
    domain: Optional[str] = None


class DomainRequest(BaseModel):
    domain: Optional[str] = None


class ScopeRequest(BaseModel):
    component_ids: list[PositiveInt] = Field(default_factory=list)
    domain: Optional[str] = None


async def send_verification_in_background(subscriber_id: int, token: str, registry: ChannelRegistry) -> None:
    try:
        await send_subscription_verification(subscriber_id, token, registry)
    except SubscriptionError as e:
        logger.error(f"Verification for subscriber {subscriber_id} not sent: {e}")


@router.post("")
async def subscribe(
    body: SubscribeRequest,
    background_tasks: BackgroundTasks,
    manager: SubscriptionManager = Depends(get_manager),
    registry: ChannelRegistry = Depends(get_registry),
):
    # do not re-send while an earlier confirmation link is still valid
    if manager.has_pending_unexpired_subscription(body.email, body.page_id):
        raise HTTPException(
            status_code=400,
            detail="A confirmation link was already sent. Please check your email "
                   "or wait until it expires to request a new one.",
        )

    subscription = manager.upsert_email_subscription(body.email, body.page_id, body.component_ids)
    if subscription.accepted_at is not None:
        raise HTTPException(status_code=409, detail="Email already subscribed")

    background_tasks.add_task(send_verification_in_background, subscription.id, subscription.token, registry)

    return {
        "success": True,
        "subscription": {
            "id": subscription.id,
            "accepted_at": subscription.accepted_at,
            "component_ids": subscription.component_ids,
        },
    }


@router.post("/webhook")
async def subscribe_webhook(
    body: WebhookSubscribeRequest,
    background_tasks: BackgroundTasks,
    manager: SubscriptionManager = Depends(get_manager),
    registry: ChannelRegistry = Depends(get_registry),
):
    subscription = manager.upsert_webhook_subscription(
        body.webhook_url, body.page_id, body.component_ids, body.channel_config
    )
    if subscription.accepted_at is not None:
        raise HTTPException(status_code=409, detail="Webhook already subscribed")

    background_tasks.add_task(send_verification_in_background, subscription.id, subscription.token, registry)

    return {
        "success": True,
        "subscription": {
            "id": subscription.id,
            "accepted_at": subscription.accepted_at,
            "component_ids": subscription.component_ids,
        },
    }


@router.post("/verify")
async def verify(body: TokenRequest, manager: SubscriptionManager = Depends(get_manager)):
    subscription = manager.verify(body.token, body.domain)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found or token invalid")

    return {
        "success": True,
        "subscription": {
            "id": subscription.id,
            "page_slug": subscription.page_slug,
            "page_name": subscription.page_name,
            "component_ids": subscription.component_ids,
        },
    }


@router.get("/{token}")
async def get_subscription(
    token: str,
    domain: Optional[str] = None,
    manager: SubscriptionManager = Depends(get_manager),
):
    subscription = manager.get_by_token(token, domain)
    if subscription is None:
        raise HTTPException(status_code=404, detail="Subscription not found")

    return subscription.model_dump(mode="json", exclude={"token", "expires_at"})


@router.put("/{token}/scope")
async def update_scope(
    token: str,
    body: ScopeRequest,
    manager: SubscriptionManager = Depends(get_manager),
):
    subscription = manager.update_scope(token, body.component_ids, body.domain)
    return {
        "success": True,
        "subscription": {"id": subscription.id, "component_ids": subscription.component_ids},
    }


@router.post("/{token}/unsubscribe")
async def unsubscribe(
    token: str,
    body: Optional[DomainRequest] = None,
    manager: SubscriptionManager = Depends(get_manager),
):
    manager.unsubscribe(token, body.domain if body else None)
    return {"success": True}
