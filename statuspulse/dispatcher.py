"""
Notification dispatcher

Resolves the subscribers of a page update, keeps those whose component scope
matches, groups them by channel and fans the sends out concurrently.

Dispatch is best effort: every failure (missing event, missing page, unknown
channel, a channel send raising) is logged and swallowed here so that it can
never fail the write that produced the event. There is no retry.
"""

import asyncio
import functools
import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from .channels.registry import ChannelRegistry
from .database import (
    EventRepository,
    PageRepository,
    PageUpdateStatus,
    SubscriberRepository,
    get_session,
)
from .subscription.manager import to_subscription
from .subscription.types import DeliveryResult, PageUpdate, Subscription
from .utils import isoformat_utc

logger = logging.getLogger(__name__)


def matches_scope(component_ids: Iterable[int], affected_component_ids: Iterable[int]) -> bool:
    """Empty scope is the entire page; otherwise at least one component must be affected"""
    scope = set(component_ids)
    if not scope:
        return True
    return not scope.isdisjoint(affected_component_ids)


def filter_matching(
    subscriptions: Iterable[Subscription],
    affected_component_ids: Iterable[int]
) -> list[Subscription]:
    affected = set(affected_component_ids)
    return [s for s in subscriptions if matches_scope(s.component_ids, affected)]


def group_by_channel(subscriptions: Iterable[Subscription]) -> dict[str, list[Subscription]]:
    groups = defaultdict(list)
    for subscription in subscriptions:
        groups[subscription.channel_type.value].append(subscription)
    return dict(groups)


async def _run_sync(func, *args):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


class NotificationDispatcher:
    """Fans page updates out to matching subscribers"""

    def __init__(self, registry: ChannelRegistry):
        self.registry = registry

    async def dispatch_status_report_update(self, status_report_update_id: int) -> None:
        try:
            page_update = await _run_sync(self._load_status_report_update, status_report_update_id)
        except Exception:
            logger.exception(f"Failed to load status report update {status_report_update_id}")
            return

        if page_update is not None:
            await self.dispatch_page_update(page_update)

    async def dispatch_maintenance_update(self, maintenance_id: int) -> None:
        try:
            page_update = await _run_sync(self._load_maintenance, maintenance_id)
        except Exception:
            logger.exception(f"Failed to load maintenance {maintenance_id}")
            return

        if page_update is not None:
            await self.dispatch_page_update(page_update)

    async def dispatch_page_update(self, page_update: PageUpdate) -> None:
        """
        Notify every matching subscriber of page_update

        Channel groups are sent concurrently and awaited until all settle; a
        failing channel never cancels the others. Never raises.
        """
        try:
            matching = await _run_sync(self._load_matching_subscriptions, page_update)
        except Exception:
            logger.exception(f"Failed to load subscribers for page {page_update.page_id}")
            return

        if matching is None:
            return

        if not matching:
            logger.info(f"No matching subscriptions for page update {page_update.id}")
            return

        groups = group_by_channel(matching)
        await asyncio.gather(
            *(self._send_channel(channel_type, subs, page_update) for channel_type, subs in groups.items()),
            return_exceptions=True,
        )

    async def _send_channel(
        self,
        channel_type: str,
        subscriptions: Sequence[Subscription],
        page_update: PageUpdate
    ) -> list[DeliveryResult]:
        channel = self.registry.get(channel_type)
        if channel is None:
            logger.error(f"Unknown channel type: {channel_type}")
            return []

        try:
            results = await channel.send_notifications(subscriptions, page_update)
        except Exception:
            logger.exception(f"Failed to send notifications via {channel_type}")
            return []

        failed = [r for r in results if not r.success]
        logger.info(
            f"Sent {len(subscriptions)} notifications via {channel_type} "
            f"for page update {page_update.id} ({len(failed)} failed)"
        )
        return results

    # ------------------------------------------------------------------
    # loaders (run in a worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _load_status_report_update(status_report_update_id: int) -> Optional[PageUpdate]:
        with get_session() as session:
            update = EventRepository.get_status_report_update(session, status_report_update_id)
            if update is None or update.status_report is None:
                logger.error(f"Status report update {status_report_update_id} not found")
                return None

            report = update.status_report
            if not report.page_id:
                logger.error(f"Status report {report.id} has no page ID")
                return None

            components = report.page_components
            return PageUpdate(
                id=report.id,
                page_id=report.page_id,
                title=report.title,
                status=PageUpdateStatus(update.status),
                message=update.message,
                page_component_ids=[c.id for c in components],
                page_components=[c.name for c in components],
                date=isoformat_utc(update.date),
            )

    @staticmethod
    def _load_maintenance(maintenance_id: int) -> Optional[PageUpdate]:
        with get_session() as session:
            maintenance = EventRepository.get_maintenance(session, maintenance_id)
            if maintenance is None:
                logger.error(f"Maintenance {maintenance_id} not found")
                return None

            if not maintenance.page_id:
                logger.error(f"Maintenance {maintenance_id} has no page ID")
                return None

            components = maintenance.page_components
            return PageUpdate(
                id=maintenance.id,
                page_id=maintenance.page_id,
                title=maintenance.title,
                status=PageUpdateStatus.MAINTENANCE,
                message=maintenance.message,
                page_component_ids=[c.id for c in components],
                page_components=[c.name for c in components],
                date=f"{isoformat_utc(maintenance.from_date)} - {isoformat_utc(maintenance.to_date)}",
            )

    @staticmethod
    def _load_matching_subscriptions(page_update: PageUpdate) -> Optional[list[Subscription]]:
        with get_session() as session:
            page = PageRepository.get(session, page_update.page_id)
            if page is None:
                logger.error(f"Page {page_update.page_id} not found")
                return None

            subscriptions = [
                to_subscription(subscriber, page)
                for subscriber in SubscriberRepository.get_accepted_for_page(session, page.id)
            ]

        return filter_matching(subscriptions, page_update.page_component_ids)
