"""
Subscription manager - subscribe, verify, scope updates and unsubscribe

State machine of a subscriber row:

    PENDING --verify--> ACCEPTED
    PENDING / ACCEPTED --unsubscribe--> UNSUBSCRIBED (terminal)

An unsubscribed row is never reactivated; subscribing again creates a new row
with a fresh token so the old row keeps its history.
"""

import json
import uuid
import logging
from datetime import timedelta
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError

from ..config import settings
from ..database import (
    ChannelType,
    Page,
    PageSubscriber,
    PageSubscriberComponent,
    PageRepository,
    SubscriberRepository,
    get_session,
)
from .validation import (
    validate_email_config,
    validate_webhook_config,
    validate_webhook_url,
)
from ..utils import utcnow
from .errors import (
    InvalidChannelConfigError,
    InvalidComponentsError,
    PageNotFoundError,
    SubscriptionConflictError,
    SubscriptionExpiredError,
    SubscriptionNotFoundError,
    SubscriptionNotVerifiedError,
    SubscriptionUnsubscribedError,
)
from .types import (
    ComponentRef,
    EmailSubscription,
    SubscriberListEntry,
    Subscription,
    WebhookSubscription,
)

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """"john@example.com" -> "j***@example.com" """
    local_part, sep, domain = email.partition("@")
    if not sep or not domain:
        return email

    masked = f"{local_part[0]}***" if local_part else "***"
    return f"{masked}@{domain}"


def domain_matches(page: Page, domain: Optional[str]) -> bool:
    """A supplied domain must be the page slug or its custom domain"""
    if not domain:
        return True

    domain = domain.lower()
    if domain == page.slug.lower():
        return True
    return bool(page.custom_domain) and domain == page.custom_domain.lower()


def to_subscription(subscriber: PageSubscriber, page: Page, masked: bool = False) -> Subscription:
    """Tagged projection of a subscriber row; masked hides identity, token and config"""
    fields = dict(
        id=subscriber.id,
        page_id=subscriber.page_id,
        page_name=page.title,
        page_slug=page.slug,
        custom_domain=page.custom_domain,
        token=None if masked else subscriber.token,
        accepted_at=subscriber.accepted_at,
        expires_at=subscriber.expires_at,
        unsubscribed_at=subscriber.unsubscribed_at,
        component_ids=subscriber.component_ids,
    )

    if subscriber.channel_type == ChannelType.WEBHOOK.value:
        return WebhookSubscription(
            webhook_url=subscriber.webhook_url,
            channel_config=None if masked else subscriber.channel_config,
            **fields
        )

    email = subscriber.email
    return EmailSubscription(email=mask_email(email) if masked else email, **fields)


class SubscriptionManager:
    """Owns the lifecycle of page subscribers"""

    def __init__(self, verification_expiry_days: int = None):
        days = verification_expiry_days or settings.verification_expiry_days
        self.verification_expiry = timedelta(days=days)

    @staticmethod
    def generate_token() -> str:
        return str(uuid.uuid4())

    # ------------------------------------------------------------------
    # create / merge
    # ------------------------------------------------------------------

    def upsert_email_subscription(
        self,
        email: str,
        page_id: int,
        component_ids: Optional[Iterable[int]] = None
    ) -> EmailSubscription:
        """
        Create or merge an email subscription

        Args:
            email: subscriber address, stored lowercase
            page_id: page to follow
            component_ids: scope; empty or None means the entire page

        Returns:
            The created, merged or (when already verified) unchanged subscription,
            including its token.

        Raises:
            PageNotFoundError, InvalidComponentsError, InvalidChannelConfigError
        """
        result = validate_email_config(email)
        if not result.valid:
            raise InvalidChannelConfigError(result.error)

        return self._upsert(ChannelType.EMAIL, email.strip().lower(), page_id, component_ids)

    def upsert_webhook_subscription(
        self,
        webhook_url: str,
        page_id: int,
        component_ids: Optional[Iterable[int]] = None,
        channel_config: Optional[dict] = None
    ) -> WebhookSubscription:
        """
        Create or merge a webhook subscription

        Same rules as email subscriptions. A config passed while the row is
        still pending replaces the stored one.
        """
        result = validate_webhook_url(webhook_url)
        if not result.valid:
            raise InvalidChannelConfigError(result.error)

        config_json = None
        if channel_config is not None:
            result = validate_webhook_config(channel_config)
            if not result.valid:
                raise InvalidChannelConfigError(result.error)
            config_json = json.dumps(channel_config)

        return self._upsert(
            ChannelType.WEBHOOK, webhook_url.strip(), page_id, component_ids, config_json
        )

    def _upsert(
        self,
        channel_type: ChannelType,
        identity: str,
        page_id: int,
        component_ids: Optional[Iterable[int]],
        channel_config: Optional[str] = None
    ) -> Subscription:
        component_ids = list(dict.fromkeys(component_ids or []))

        try:
            return self._upsert_once(channel_type, identity, page_id, component_ids, channel_config)
        except IntegrityError:
            # a concurrent request inserted the active row first; re-read and merge
            logger.warning(f"Concurrent subscription insert for page {page_id}, retrying")

        try:
            return self._upsert_once(channel_type, identity, page_id, component_ids, channel_config)
        except IntegrityError as e:
            raise SubscriptionConflictError(
                f"Subscription for page {page_id} was modified concurrently"
            ) from e

    def _upsert_once(
        self,
        channel_type: ChannelType,
        identity: str,
        page_id: int,
        component_ids: list[int],
        channel_config: Optional[str]
    ) -> Subscription:
        with get_session() as session:
            page = PageRepository.get(session, page_id)
            if page is None:
                raise PageNotFoundError(page_id)

            invalid_ids = PageRepository.invalid_component_ids(session, page_id, component_ids)
            if invalid_ids:
                raise InvalidComponentsError(invalid_ids)

            now = utcnow()
            existing = SubscriberRepository.get_active(session, channel_type, identity, page_id)

            if existing is not None:
                if existing.accepted_at is not None:
                    # verified rows are returned as-is; the caller reports "already subscribed"
                    return to_subscription(existing, page)

                SubscriberRepository.add_components(existing, component_ids)
                existing.expires_at = now + self.verification_expiry
                existing.updated_at = now
                if channel_config is not None:
                    existing.channel_config = channel_config
                session.flush()

                logger.info(f"Pending subscription merged: id={existing.id}, page={page_id}")
                return to_subscription(existing, page)

            subscriber = PageSubscriber(
                page_id=page_id,
                channel_type=channel_type.value,
                email=identity if channel_type == ChannelType.EMAIL else None,
                webhook_url=identity if channel_type == ChannelType.WEBHOOK else None,
                channel_config=channel_config,
                token=self.generate_token(),
                expires_at=now + self.verification_expiry,
                created_at=now,
                updated_at=now,
            )
            subscriber.components = [
                PageSubscriberComponent(page_component_id=component_id)
                for component_id in component_ids
            ]
            session.add(subscriber)
            session.flush()

            logger.info(f"New {channel_type.value} subscription: id={subscriber.id}, page={page_id}")
            return to_subscription(subscriber, page)

    # ------------------------------------------------------------------
    # token operations
    # ------------------------------------------------------------------

    def verify(self, token: str, domain: Optional[str] = None) -> Optional[Subscription]:
        """
        Accept a pending subscription

        Returns None for unknown tokens and domain mismatches. Repeat visits to
        an accepted subscription return it unchanged.

        Raises:
            SubscriptionExpiredError: pending and past its verification deadline
        """
        with get_session() as session:
            subscriber = SubscriberRepository.get_by_token(session, token)
            if subscriber is None or not domain_matches(subscriber.page, domain):
                return None

            if subscriber.accepted_at is not None or subscriber.unsubscribed_at is not None:
                return to_subscription(subscriber, subscriber.page)

            now = utcnow()
            if subscriber.expires_at is not None and subscriber.expires_at < now:
                raise SubscriptionExpiredError()

            subscriber.accepted_at = now
            subscriber.updated_at = now
            session.flush()

            logger.info(f"Subscription verified: id={subscriber.id}")
            return to_subscription(subscriber, subscriber.page)

    def update_scope(
        self,
        token: str,
        component_ids: Iterable[int],
        domain: Optional[str] = None
    ) -> Subscription:
        """Replace the whole component scope of a verified subscription"""
        component_ids = list(dict.fromkeys(component_ids))

        with get_session() as session:
            subscriber = SubscriberRepository.get_by_token(session, token)
            if subscriber is None or not domain_matches(subscriber.page, domain):
                raise SubscriptionNotFoundError()

            if subscriber.accepted_at is None:
                raise SubscriptionNotVerifiedError()

            if subscriber.unsubscribed_at is not None:
                raise SubscriptionUnsubscribedError()

            invalid_ids = PageRepository.invalid_component_ids(
                session, subscriber.page_id, component_ids
            )
            if invalid_ids:
                raise InvalidComponentsError(invalid_ids)

            SubscriberRepository.replace_components(session, subscriber, component_ids)
            subscriber.updated_at = utcnow()
            session.flush()

            logger.info(f"Subscription scope updated: id={subscriber.id}, components={component_ids}")
            return to_subscription(subscriber, subscriber.page)

    def unsubscribe(self, token: str, domain: Optional[str] = None) -> None:
        """Terminal transition; repeated calls succeed without changes"""
        with get_session() as session:
            subscriber = SubscriberRepository.get_by_token(session, token)
            if subscriber is None or not domain_matches(subscriber.page, domain):
                raise SubscriptionNotFoundError()

            if subscriber.unsubscribed_at is not None:
                return

            now = utcnow()
            subscriber.unsubscribed_at = now
            subscriber.updated_at = now
            logger.info(f"Unsubscribed: id={subscriber.id}")

    def get_by_token(self, token: str, domain: Optional[str] = None) -> Optional[Subscription]:
        """Read-only projection for the manage page; identity masked, no token"""
        with get_session() as session:
            subscriber = SubscriberRepository.get_by_token(session, token)
            if subscriber is None or not domain_matches(subscriber.page, domain):
                return None

            return to_subscription(subscriber, subscriber.page, masked=True)

    def has_pending_unexpired_subscription(self, email: str, page_id: int) -> bool:
        """True while a verification email for (email, page) is still valid"""
        with get_session() as session:
            existing = SubscriberRepository.get_active(
                session, ChannelType.EMAIL, email.strip(), page_id
            )
            if existing is None or existing.accepted_at is not None:
                return False
            return existing.expires_at is not None and existing.expires_at > utcnow()

    # ------------------------------------------------------------------
    # dashboard
    # ------------------------------------------------------------------

    def list_page_subscribers(self, page_id: int, order: str = "desc") -> list[SubscriberListEntry]:
        with get_session() as session:
            if PageRepository.get(session, page_id) is None:
                raise PageNotFoundError(page_id)

            entries = []
            for subscriber in SubscriberRepository.list_for_page(session, page_id, order):
                components = [
                    ComponentRef(id=c.page_component.id, name=c.page_component.name)
                    for c in subscriber.components
                ]
                entries.append(SubscriberListEntry(
                    id=subscriber.id,
                    page_id=subscriber.page_id,
                    channel_type=ChannelType(subscriber.channel_type),
                    email=subscriber.email,
                    webhook_url=subscriber.webhook_url,
                    accepted_at=subscriber.accepted_at,
                    unsubscribed_at=subscriber.unsubscribed_at,
                    created_at=subscriber.created_at,
                    components=components,
                    is_entire_page=not components,
                ))
            return entries

    def delete_subscriber(self, subscriber_id: int, page_id: int) -> None:
        with get_session() as session:
            if PageRepository.get(session, page_id) is None:
                raise PageNotFoundError(page_id)

            subscriber = session.get(PageSubscriber, subscriber_id)
            if subscriber is None or subscriber.page_id != page_id:
                raise SubscriptionNotFoundError("Subscriber not found")

            session.delete(subscriber)
            logger.info(f"Subscriber deleted: id={subscriber_id}, page={page_id}")

