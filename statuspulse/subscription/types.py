"""
Subscription projections and the page update event record
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from ..database.models import ChannelType, PageUpdateStatus


class Subscription(BaseModel):
    """Fields shared by every channel variant"""
    id: int
    page_id: int
    page_name: str
    page_slug: str
    custom_domain: Optional[str] = None
    token: Optional[str] = None
    accepted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None
    component_ids: list[int] = Field(default_factory=list)


class EmailSubscription(Subscription):
    channel_type: Literal[ChannelType.EMAIL] = ChannelType.EMAIL
    email: str


class WebhookSubscription(Subscription):
    channel_type: Literal[ChannelType.WEBHOOK] = ChannelType.WEBHOOK
    webhook_url: str
    channel_config: Optional[str] = None


class PageUpdate(BaseModel):
    """Canonical event record built by the dispatcher before fan-out"""
    id: int
    page_id: int
    title: str
    status: PageUpdateStatus
    message: str
    page_component_ids: list[int] = Field(default_factory=list)
    page_components: list[str] = Field(default_factory=list)
    date: str


class ComponentRef(BaseModel):
    id: int
    name: str


class SubscriberListEntry(BaseModel):
    """Dashboard row; identity is not masked"""
    id: int
    page_id: int
    channel_type: ChannelType
    email: Optional[str] = None
    webhook_url: Optional[str] = None
    accepted_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    components: list[ComponentRef] = Field(default_factory=list)
    is_entire_page: bool = True


@dataclass
class DeliveryResult:
    """Outcome of one recipient's delivery attempt"""
    recipient: str
    success: bool
    error_message: Optional[str] = None
