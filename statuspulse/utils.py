"""
Time and link helpers shared by the subscription and dispatch modules
"""

from datetime import datetime, timezone
from typing import Optional

from .config import settings


def utcnow() -> datetime:
    """
    Current UTC time as a naive datetime.

    All timestamps are stored naive-UTC so that SQLite round-trips compare
    correctly with freshly generated values.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def page_base_url(slug: str, custom_domain: Optional[str] = None) -> str:
    """Public base URL of a status page"""
    if custom_domain:
        return f"https://{custom_domain}"
    return f"https://{slug}.{settings.status_page_base_domain}"


def verify_url(slug: str, custom_domain: Optional[str], token: str) -> str:
    return f"{page_base_url(slug, custom_domain)}/verify/{token}"


def manage_url(slug: str, custom_domain: Optional[str], token: str) -> str:
    return f"{page_base_url(slug, custom_domain)}/manage/{token}"


def unsubscribe_url(slug: str, custom_domain: Optional[str], token: str) -> str:
    return f"{page_base_url(slug, custom_domain)}/unsubscribe/{token}"


def isoformat_utc(value: datetime) -> str:
    """"2024-05-01T12:00:00.000Z" style timestamp for naive-UTC datetimes"""
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"
