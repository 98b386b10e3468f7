"""
Database module
"""

from .models import (
    Base,
    ChannelType,
    PageUpdateStatus,
    Page,
    PageComponent,
    StatusReport,
    StatusReportUpdate,
    Maintenance,
    PageSubscriber,
    PageSubscriberComponent,
)
from .repository import (
    init_db,
    get_session,
    PageRepository,
    SubscriberRepository,
    EventRepository,
)

__all__ = [
    "Base",
    "ChannelType",
    "PageUpdateStatus",
    "Page",
    "PageComponent",
    "StatusReport",
    "StatusReportUpdate",
    "Maintenance",
    "PageSubscriber",
    "PageSubscriberComponent",
    "init_db",
    "get_session",
    "PageRepository",
    "SubscriberRepository",
    "EventRepository",
]
