"""
Shared fixtures: a throwaway SQLite database per test, a seeded page and
in-memory channel fakes
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from statuspulse.database import (
    Maintenance,
    Page,
    PageComponent,
    PageSubscriber,
    StatusReport,
    StatusReportUpdate,
    get_session,
    init_db,
)
from statuspulse.database.models import ChannelType
from statuspulse.subscription.manager import SubscriptionManager
from statuspulse.subscription.types import DeliveryResult
from statuspulse.subscription.validation import ConfigValidation
from statuspulse.channels.base import SubscriptionChannel
from statuspulse.utils import utcnow


class RecordingChannel(SubscriptionChannel):
    """Channel that records what it was asked to send"""

    def __init__(self, channel_type: ChannelType, fail: bool = False):
        self.channel_type = channel_type
        self.fail = fail
        self.verifications = []
        self.calls = []

    def validate_config(self, value):
        return ConfigValidation(valid=True)

    async def send_verification(self, subscription, verify_url):
        self.verifications.append((subscription, verify_url))

    async def send_notifications(self, subscriptions, page_update):
        self.calls.append((list(subscriptions), page_update))
        if self.fail:
            raise RuntimeError(f"{self.channel_type.value} transport down")
        return [DeliveryResult(recipient=str(s.id), success=True) for s in subscriptions]

    @property
    def notified_ids(self) -> set:
        return {s.id for subs, _ in self.calls for s in subs}


class FakeEmailClient:
    """Stands in for EmailClient; records verification emails and batches"""

    def __init__(self):
        self.verifications = []
        self.batches = []

    async def send_page_subscription(self, to, link, page):
        self.verifications.append({"to": to, "link": link, "page": page})

    async def send_status_report_update(self, **kwargs):
        self.batches.append(kwargs)
        return [DeliveryResult(recipient=r.email, success=True) for r in kwargs["subscribers"]]


@pytest.fixture
def db(tmp_path):
    """Fresh database file for every test"""
    init_db(f"sqlite:///{tmp_path / 'statuspulse.db'}")
    yield


@pytest.fixture
def page(db):
    """Page "Acme Status" with components API and Dashboard"""
    with get_session() as session:
        page = Page(title="Acme Status", slug="acme", custom_domain="status.acme.io")
        api = PageComponent(name="API")
        dashboard = PageComponent(name="Dashboard")
        page.components = [api, dashboard]
        session.add(page)
        session.flush()

        return SimpleNamespace(
            id=page.id,
            slug=page.slug,
            custom_domain=page.custom_domain,
            c1=api.id,
            c2=dashboard.id,
        )


@pytest.fixture
def other_page(db):
    with get_session() as session:
        page = Page(title="Other Status", slug="other")
        component = PageComponent(name="Billing")
        page.components = [component]
        session.add(page)
        session.flush()

        return SimpleNamespace(id=page.id, slug=page.slug, c1=component.id)


@pytest.fixture
def manager(db):
    return SubscriptionManager(verification_expiry_days=7)


@pytest.fixture
def expire_subscription():
    """Move a subscriber's verification deadline into the past"""
    def _expire(subscriber_id: int):
        with get_session() as session:
            subscriber = session.get(PageSubscriber, subscriber_id)
            subscriber.expires_at = utcnow() - timedelta(minutes=1)
    return _expire


@pytest.fixture
def make_status_report_update():
    """Create a status report with one update; returns the update id"""
    def _make(page_id, component_ids=(), status="investigating", message="We are looking into it",
              date=datetime(2024, 5, 1, 12, 0, 0)):
        with get_session() as session:
            report = StatusReport(page_id=page_id, title="API latency")
            report.page_components = [session.get(PageComponent, cid) for cid in component_ids]
            update = StatusReportUpdate(status=status, message=message, date=date)
            report.updates = [update]
            session.add(report)
            session.flush()
            return update.id
    return _make


@pytest.fixture
def make_maintenance():
    """Create a maintenance window; returns its id"""
    def _make(page_id, component_ids=(),
              from_date=datetime(2024, 5, 1, 10, 0, 0), to_date=datetime(2024, 5, 1, 12, 0, 0)):
        with get_session() as session:
            maintenance = Maintenance(
                page_id=page_id,
                title="Database upgrade",
                message="Planned downtime",
                from_date=from_date,
                to_date=to_date,
            )
            maintenance.page_components = [session.get(PageComponent, cid) for cid in component_ids]
            session.add(maintenance)
            session.flush()
            return maintenance.id
    return _make


@pytest.fixture
def email_channel():
    return RecordingChannel(ChannelType.EMAIL)


@pytest.fixture
def webhook_channel():
    return RecordingChannel(ChannelType.WEBHOOK)


@pytest.fixture
def fake_email_client():
    return FakeEmailClient()
