"""
Outbound email transport - verification and status update emails over SMTP
"""

import logging
from dataclasses import dataclass
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional, Sequence

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import settings
from ..subscription.errors import ChannelDeliveryError
from ..subscription.types import DeliveryResult
from ..utils import manage_url, unsubscribe_url, utcnow

logger = logging.getLogger(__name__)


@dataclass
class EmailRecipient:
    email: str
    token: str


class EmailClient:
    """SMTP email client used by the email channel"""

    def __init__(
        self,
        smtp_host: str = None,
        smtp_port: int = None,
        username: str = None,
        password: str = None,
        sender_email: str = None,
        sender_name: str = None,
        timeout: float = None,
        template_dir: str = None
    ):
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.username = username or settings.smtp_username
        self.password = password or settings.smtp_password
        self.sender_email = sender_email or settings.email_sender or self.username
        self.sender_name = sender_name or settings.email_sender_name
        self.timeout = timeout or settings.smtp_timeout_seconds

        if template_dir is None:
            template_dir = Path(__file__).parent / "templates"

        self._env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.sender_email and self.username and self.password)

    async def send_page_subscription(self, to: str, link: str, page: str) -> None:
        """
        Send the subscription confirmation email

        Args:
            to: recipient address
            link: verification URL
            page: status page display name

        Raises:
            ChannelDeliveryError: not configured, or the SMTP exchange failed
        """
        subject = f"Confirm your subscription to {page}"
        html_content = self._render(
            "subscription_verification.html",
            self._fallback_verification_html,
            link=link,
            page=page,
        )
        message = self._build_message(to, subject, html_content)

        async with self._connect() as smtp:
            try:
                await smtp.send_message(message)
            except aiosmtplib.SMTPException as e:
                raise ChannelDeliveryError(f"Verification email to {to} failed: {e}") from e

        logger.info(f"Verification email sent: {to}")

    async def send_status_report_update(
        self,
        subscribers: Sequence[EmailRecipient],
        page_title: str,
        page_slug: str,
        custom_domain: Optional[str],
        report_title: str,
        status: str,
        message: str,
        date: str,
        page_components: Sequence[str]
    ) -> list[DeliveryResult]:
        """
        Send one status update to a batch of subscribers over a single SMTP session

        Each recipient gets a personalised message with its own manage and
        unsubscribe links. A recipient refused by the server is reported as a
        failed DeliveryResult and does not stop the rest of the batch.

        Raises:
            ChannelDeliveryError: not configured, or the connection could not be set up
        """
        if not subscribers:
            return []

        subject = f"[{page_title}] {report_title}"
        results = []

        async with self._connect() as smtp:
            for subscriber in subscribers:
                html_content = self._render(
                    "status_update.html",
                    self._fallback_status_update_html,
                    page_title=page_title,
                    report_title=report_title,
                    status=status,
                    message=message,
                    date=date,
                    page_components=list(page_components),
                    manage_url=manage_url(page_slug, custom_domain, subscriber.token),
                    unsubscribe_url=unsubscribe_url(page_slug, custom_domain, subscriber.token),
                )
                email_message = self._build_message(subscriber.email, subject, html_content)

                try:
                    await smtp.send_message(email_message)
                    results.append(DeliveryResult(recipient=subscriber.email, success=True))
                except aiosmtplib.SMTPException as e:
                    logger.error(f"Status update email failed ({subscriber.email}): {e}")
                    results.append(DeliveryResult(
                        recipient=subscriber.email,
                        success=False,
                        error_message=str(e)
                    ))

        success_count = sum(1 for r in results if r.success)
        logger.info(f"Status update batch sent: {success_count}/{len(results)} succeeded")
        return results

    def _connect(self) -> "_SMTPSession":
        if not self.is_configured:
            raise ChannelDeliveryError("SMTP is not configured (SMTP_USERNAME / SMTP_PASSWORD)")
        return _SMTPSession(self)

    def _build_message(self, recipient: str, subject: str, html_content: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = Header(subject, "utf-8").encode()
        message["From"] = f"{self.sender_name} <{self.sender_email}>"
        message["To"] = recipient
        message.attach(MIMEText(html_content, "html", "utf-8"))
        return message

    def _render(self, template_name: str, fallback, **context) -> str:
        try:
            template = self._env.get_template(template_name)
            return template.render(generated_at=utcnow(), **context)
        except Exception as e:
            logger.error(f"Template rendering failed ({template_name}): {e}")
            return fallback(**context)

    @staticmethod
    def _fallback_verification_html(link: str, page: str) -> str:
        return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2>Confirm your subscription to {page}</h2>
    <p><a href="{link}">{link}</a></p>
    <p style="color: #6b7280; font-size: 12px;">If you did not request this, you can ignore this email.</p>
</body>
</html>
"""

    @staticmethod
    def _fallback_status_update_html(
        page_title: str,
        report_title: str,
        status: str,
        message: str,
        date: str,
        page_components: list[str],
        manage_url: str,
        unsubscribe_url: str
    ) -> str:
        components = ", ".join(page_components)
        return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2>{page_title}: {report_title}</h2>
    <p><strong>{status}</strong> &middot; {date}</p>
    <p>{message}</p>
    <p>{components}</p>
    <p style="color: #6b7280; font-size: 12px;">
        <a href="{manage_url}">Manage subscription</a> &middot;
        <a href="{unsubscribe_url}">Unsubscribe</a>
    </p>
</body>
</html>
"""


class _SMTPSession:
    """Connected, authenticated SMTP session; connection errors become ChannelDeliveryError"""

    def __init__(self, client: EmailClient):
        self._client = client
        self._smtp = aiosmtplib.SMTP(
            hostname=client.smtp_host,
            port=client.smtp_port,
            use_tls=client.smtp_port == 465,
            timeout=client.timeout,
        )

    async def __aenter__(self) -> aiosmtplib.SMTP:
        try:
            await self._smtp.connect()
            await self._smtp.login(self._client.username, self._client.password)
        except (aiosmtplib.SMTPException, OSError) as e:
            self._smtp.close()
            raise ChannelDeliveryError(f"SMTP connection failed: {e}") from e
        return self._smtp

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self._smtp.quit()
        except aiosmtplib.SMTPException as e:
            logger.warning(f"SMTP quit failed: {e}")
            self._smtp.close()
