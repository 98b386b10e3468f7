"""
Repository layer over the subscription store
"""

from pathlib import Path
from typing import Iterable, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event, func, and_
from sqlalchemy.orm import sessionmaker, Session, selectinload

from .models import (
    Base,
    ChannelType,
    Maintenance,
    Page,
    PageComponent,
    PageSubscriber,
    PageSubscriberComponent,
    StatusReport,
    StatusReportUpdate,
)


# database engine and session factory
_engine = None
_SessionLocal = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(database_url: str = "sqlite:///./data/statuspulse.db") -> None:
    """Initialise the database and create tables"""
    global _engine, _SessionLocal

    # create the data directory
    if database_url.startswith("sqlite:///"):
        db_path = database_url.replace("sqlite:///", "")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    is_sqlite = database_url.startswith("sqlite")
    _engine = create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False} if is_sqlite else {}
    )
    if is_sqlite:
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)

    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=_engine)

    Base.metadata.create_all(bind=_engine)


@contextmanager
def get_session():
    """Transactional session: commit on success, rollback on error"""
    if _SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class PageRepository:
    """Pages and their components"""

    @staticmethod
    def get(session: Session, page_id: int) -> Optional[Page]:
        return session.get(Page, page_id)

    @staticmethod
    def invalid_component_ids(session: Session, page_id: int, component_ids: Iterable[int]) -> list[int]:
        """Ids from component_ids that do not belong to page_id"""
        requested = list(dict.fromkeys(component_ids))
        if not requested:
            return []

        valid = {
            row[0]
            for row in session.query(PageComponent.id).filter(
                and_(
                    PageComponent.page_id == page_id,
                    PageComponent.id.in_(requested)
                )
            )
        }
        return [component_id for component_id in requested if component_id not in valid]


class SubscriberRepository:
    """Subscriber rows and their component scope"""

    @staticmethod
    def _identity_column(channel_type: ChannelType):
        if channel_type == ChannelType.EMAIL:
            return PageSubscriber.email
        return PageSubscriber.webhook_url

    @staticmethod
    def get_active(
        session: Session,
        channel_type: ChannelType,
        identity: str,
        page_id: int
    ) -> Optional[PageSubscriber]:
        """Current not-unsubscribed row for (identity, page, channel)"""
        column = SubscriberRepository._identity_column(channel_type)
        return (
            session.query(PageSubscriber)
            .options(selectinload(PageSubscriber.components))
            .filter(
                and_(
                    func.lower(column) == identity.lower(),
                    PageSubscriber.page_id == page_id,
                    PageSubscriber.channel_type == channel_type.value,
                    PageSubscriber.unsubscribed_at.is_(None)
                )
            )
            .first()
        )

    @staticmethod
    def get_by_token(session: Session, token: str) -> Optional[PageSubscriber]:
        return (
            session.query(PageSubscriber)
            .options(
                selectinload(PageSubscriber.page),
                selectinload(PageSubscriber.components),
            )
            .filter(PageSubscriber.token == token)
            .first()
        )

    @staticmethod
    def get_by_id_and_token(session: Session, subscriber_id: int, token: str) -> Optional[PageSubscriber]:
        return (
            session.query(PageSubscriber)
            .options(selectinload(PageSubscriber.page))
            .filter(
                and_(
                    PageSubscriber.id == subscriber_id,
                    PageSubscriber.token == token
                )
            )
            .first()
        )

    @staticmethod
    def get_accepted_for_page(session: Session, page_id: int) -> list[PageSubscriber]:
        """Verified, still-active subscribers of a page"""
        return (
            session.query(PageSubscriber)
            .options(selectinload(PageSubscriber.components))
            .filter(
                and_(
                    PageSubscriber.page_id == page_id,
                    PageSubscriber.accepted_at.isnot(None),
                    PageSubscriber.unsubscribed_at.is_(None)
                )
            )
            .all()
        )

    @staticmethod
    def list_for_page(session: Session, page_id: int, order: str = "desc") -> list[PageSubscriber]:
        """All subscribers of a page regardless of state"""
        if order == "asc":
            ordering = (PageSubscriber.created_at.asc(), PageSubscriber.id.asc())
        else:
            ordering = (PageSubscriber.created_at.desc(), PageSubscriber.id.desc())

        return (
            session.query(PageSubscriber)
            .options(
                selectinload(PageSubscriber.components).selectinload(PageSubscriberComponent.page_component)
            )
            .filter(PageSubscriber.page_id == page_id)
            .order_by(*ordering)
            .all()
        )

    @staticmethod
    def add_components(subscriber: PageSubscriber, component_ids: Iterable[int]) -> None:
        """Add scope entries that are not present yet"""
        current = set(subscriber.component_ids)
        for component_id in component_ids:
            if component_id in current:
                continue
            subscriber.components.append(PageSubscriberComponent(page_component_id=component_id))
            current.add(component_id)

    @staticmethod
    def replace_components(session: Session, subscriber: PageSubscriber, component_ids: Iterable[int]) -> None:
        """Delete the whole scope then insert the new one"""
        subscriber.components.clear()
        session.flush()

        for component_id in dict.fromkeys(component_ids):
            subscriber.components.append(PageSubscriberComponent(page_component_id=component_id))
        session.flush()


class EventRepository:
    """Status report updates and maintenances, with their affected components"""

    @staticmethod
    def get_status_report_update(session: Session, update_id: int) -> Optional[StatusReportUpdate]:
        return (
            session.query(StatusReportUpdate)
            .options(
                selectinload(StatusReportUpdate.status_report).selectinload(StatusReport.page_components)
            )
            .filter(StatusReportUpdate.id == update_id)
            .first()
        )

    @staticmethod
    def get_maintenance(session: Session, maintenance_id: int) -> Optional[Maintenance]:
        return (
            session.query(Maintenance)
            .options(selectinload(Maintenance.page_components))
            .filter(Maintenance.id == maintenance_id)
            .first()
        )
