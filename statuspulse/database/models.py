"""
SQLAlchemy database models
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    Table,
    CheckConstraint,
    and_,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

from ..utils import utcnow

Base = declarative_base()


class ChannelType(str, PyEnum):
    """Subscriber delivery channel"""
    EMAIL = "email"
    WEBHOOK = "webhook"


class PageUpdateStatus(str, PyEnum):
    """Status carried by a page update"""
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"
    MAINTENANCE = "maintenance"


# Affected components of a status report / maintenance
status_report_to_page_component = Table(
    "status_report_to_page_component",
    Base.metadata,
    Column("status_report_id", Integer, ForeignKey("status_report.id", ondelete="CASCADE"), primary_key=True),
    Column("page_component_id", Integer, ForeignKey("page_component.id", ondelete="CASCADE"), primary_key=True),
)

maintenance_to_page_component = Table(
    "maintenance_to_page_component",
    Base.metadata,
    Column("maintenance_id", Integer, ForeignKey("maintenance.id", ondelete="CASCADE"), primary_key=True),
    Column("page_component_id", Integer, ForeignKey("page_component.id", ondelete="CASCADE"), primary_key=True),
)


class Page(Base):
    """Status page"""
    __tablename__ = "page"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(256), nullable=False)
    slug = Column(String(256), unique=True, nullable=False)
    custom_domain = Column(String(256))

    created_at = Column(DateTime, default=utcnow)

    components = relationship("PageComponent", back_populates="page", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Page(id={self.id}, slug='{self.slug}')>"


class PageComponent(Base):
    """Component (service) shown on a status page"""
    __tablename__ = "page_component"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("page.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(256), nullable=False)

    page = relationship("Page", back_populates="components")

    __table_args__ = (
        Index("idx_page_component_page", "page_id"),
    )

    def __repr__(self):
        return f"<PageComponent(id={self.id}, name='{self.name}')>"


class StatusReport(Base):
    """Incident report published on a page"""
    __tablename__ = "status_report"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("page.id", ondelete="CASCADE"))
    title = Column(String(256), nullable=False)

    created_at = Column(DateTime, default=utcnow)

    page = relationship("Page")
    page_components = relationship("PageComponent", secondary=status_report_to_page_component)
    updates = relationship("StatusReportUpdate", back_populates="status_report", cascade="all, delete-orphan")


class StatusReportUpdate(Base):
    """A single timeline entry of a status report"""
    __tablename__ = "status_report_update"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status_report_id = Column(Integer, ForeignKey("status_report.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    date = Column(DateTime, nullable=False, default=utcnow)

    status_report = relationship("StatusReport", back_populates="updates")


class Maintenance(Base):
    """Scheduled maintenance window"""
    __tablename__ = "maintenance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("page.id", ondelete="CASCADE"))
    title = Column(String(256), nullable=False)
    message = Column(Text, nullable=False)
    from_date = Column(DateTime, nullable=False)
    to_date = Column(DateTime, nullable=False)

    page = relationship("Page")
    page_components = relationship("PageComponent", secondary=maintenance_to_page_component)


class PageSubscriber(Base):
    """Page subscriber (email address or webhook endpoint)"""
    __tablename__ = "page_subscriber"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_id = Column(Integer, ForeignKey("page.id", ondelete="CASCADE"), nullable=False)

    # channel discriminator; exactly one of email / webhook_url is set
    channel_type = Column(String(16), nullable=False, default=ChannelType.EMAIL.value)
    email = Column(String(255))
    webhook_url = Column(String(2048))
    channel_config = Column(Text)  # JSON: {"headers": [{"key", "value"}], "secret"}

    # verify / manage / unsubscribe credential
    token = Column(String(64), unique=True, nullable=False)

    # lifecycle
    accepted_at = Column(DateTime)
    expires_at = Column(DateTime)
    unsubscribed_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    page = relationship("Page")
    components = relationship(
        "PageSubscriberComponent",
        back_populates="subscriber",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        # one active subscription per (email, page)
        Index(
            "idx_page_subscriber_email_page_active",
            func.lower(email),
            page_id,
            unique=True,
            sqlite_where=and_(unsubscribed_at.is_(None), channel_type == ChannelType.EMAIL.value),
            postgresql_where=and_(unsubscribed_at.is_(None), channel_type == ChannelType.EMAIL.value),
        ),
        # one active subscription per (webhook url, page)
        Index(
            "idx_page_subscriber_webhook_page_active",
            func.lower(webhook_url),
            page_id,
            unique=True,
            sqlite_where=and_(unsubscribed_at.is_(None), channel_type == ChannelType.WEBHOOK.value),
            postgresql_where=and_(unsubscribed_at.is_(None), channel_type == ChannelType.WEBHOOK.value),
        ),
        CheckConstraint(
            "(channel_type = 'email' AND email IS NOT NULL AND webhook_url IS NULL) OR "
            "(channel_type = 'webhook' AND webhook_url IS NOT NULL AND email IS NULL)",
            name="page_subscriber_channel_check",
        ),
        Index("idx_page_subscriber_page", "page_id"),
    )

    @property
    def component_ids(self) -> list[int]:
        return [c.page_component_id for c in self.components]

    def __repr__(self):
        identity = self.email if self.channel_type == ChannelType.EMAIL.value else self.webhook_url
        return f"<PageSubscriber(id={self.id}, {self.channel_type}='{identity}', accepted={self.accepted_at is not None})>"


class PageSubscriberComponent(Base):
    """Subscriber scope entry; no rows means the entire page"""
    __tablename__ = "page_subscriber_to_page_component"

    page_subscriber_id = Column(
        Integer, ForeignKey("page_subscriber.id", ondelete="CASCADE"), primary_key=True
    )
    page_component_id = Column(
        Integer, ForeignKey("page_component.id", ondelete="CASCADE"), primary_key=True
    )
    created_at = Column(DateTime, default=utcnow)

    subscriber = relationship("PageSubscriber", back_populates="components")
    page_component = relationship("PageComponent")
