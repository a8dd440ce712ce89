"""Best-effort low-stock alerts.

The ledger calls ``dispatch()`` after its transaction commits. Delivery runs
in a background task; every failure is logged and swallowed so an alert can
never change the outcome or latency of the request that triggered it.
"""

from __future__ import annotations

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import httpx

from backend.app.core.config import settings
from backend.app.core.errors import NotifierFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SpoolDescriptor:
    """What an alert needs to know about a spool, detached from any session."""

    id: int
    user_id: int
    brand: str
    material: str
    color_name: str
    color: str
    owner_email: str | None = None

    @classmethod
    def from_spool(cls, spool, owner_email: str | None = None) -> SpoolDescriptor:
        return cls(
            id=spool.id,
            user_id=spool.user_id,
            brand=spool.brand,
            material=spool.material,
            color_name=spool.color_name,
            color=spool.color,
            owner_email=owner_email,
        )


def _format_grams(weight: float) -> str:
    return f"{weight:g}"


def create_low_stock_email(spool: SpoolDescriptor, remaining_weight: float) -> tuple[str, str, str]:
    """Build subject, plain text body and HTML body for a low-stock alert."""
    remaining = _format_grams(remaining_weight)
    subject = f"Low Filament Alert: {spool.brand} {spool.color_name}"
    text_body = (
        "The following filament is running low:\n\n"
        f"Brand: {spool.brand}\n"
        f"Material: {spool.material}\n"
        f"Color: {spool.color_name}\n"
        f"Remaining: {remaining}g\n\n"
        "Time to order more!"
    )
    html_body = f"""<h3>Low Filament Alert</h3>
<p>The following filament is running low:</p>
<ul>
    <li><strong>Brand:</strong> {html.escape(spool.brand)}</li>
    <li><strong>Material:</strong> {html.escape(spool.material)}</li>
    <li><strong>Color:</strong> {html.escape(spool.color_name)}</li>
    <li><strong>Remaining:</strong> {remaining}g</li>
</ul>
<p>Time to order more!</p>"""
    return subject, text_body, html_body


def send_email(
    to_email: str,
    subject: str,
    body_text: str,
    body_html: str | None = None,
) -> None:
    """Send an email using the configured SMTP server.

    Blocking; callers on the event loop run it in a worker thread.

    Raises:
        smtplib.SMTPException, OSError: If the server rejects or cannot be reached
    """
    msg = MIMEMultipart("alternative")
    msg["From"] = f"{settings.app_name} <{settings.smtp_user}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text, "plain"))
    if body_html:
        msg.attach(MIMEText(body_html, "html"))

    if settings.smtp_port == 465:
        # Implicit TLS
        with smtplib.SMTP_SSL(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.login(settings.smtp_user, settings.smtp_pass)
            server.send_message(msg)
    else:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_pass)
            server.send_message(msg)
    logger.info("Email sent successfully to %s", to_email)


class LowStockNotifier:
    """Delivers low-stock alerts by email and, optionally, webhook."""

    def __init__(self):
        self._http_client: httpx.AsyncClient | None = None
        self._tasks: set[asyncio.Task] = set()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=10.0)
        return self._http_client

    async def close(self):
        """Wait for in-flight alerts, then close the HTTP client."""
        await self.drain()
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, spool: SpoolDescriptor, remaining_weight: float) -> asyncio.Task:
        """Schedule an alert and return without waiting for delivery."""
        task = asyncio.create_task(
            self.notify_low_stock(spool, remaining_weight),
            name=f"low-stock-alert-{spool.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float = 15.0) -> None:
        """Wait for dispatched alerts to finish (used on shutdown and in tests)."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d low-stock alert(s) still pending at shutdown", len(pending))

    async def notify_low_stock(self, spool: SpoolDescriptor, remaining_weight: float) -> None:
        """Deliver one alert on every configured channel. Never raises."""
        logger.info(
            "Spool %d (%s %s %s) is low: %sg remaining",
            spool.id,
            spool.brand,
            spool.material,
            spool.color_name,
            _format_grams(remaining_weight),
        )
        for channel in (self._send_email, self._send_webhook):
            try:
                await channel(spool, remaining_weight)
            except Exception as e:
                failure = NotifierFailure(f"{channel.__name__} failed for spool {spool.id}: {e}")
                logger.error("Low-stock alert not delivered: %s", failure)

    async def _send_email(self, spool: SpoolDescriptor, remaining_weight: float) -> None:
        if not (settings.smtp_host and settings.smtp_user and settings.smtp_pass):
            logger.warning("SMTP not configured, skipping low-stock email for spool %d", spool.id)
            return

        recipient = settings.alert_email or spool.owner_email or settings.smtp_user
        subject, text_body, html_body = create_low_stock_email(spool, remaining_weight)
        await asyncio.to_thread(send_email, recipient, subject, text_body, html_body)

    async def _send_webhook(self, spool: SpoolDescriptor, remaining_weight: float) -> None:
        webhook_url = (settings.low_stock_webhook_url or "").strip()
        if not webhook_url:
            return

        data = {
            "event": "low_stock",
            "spool_id": spool.id,
            "brand": spool.brand,
            "material": spool.material,
            "color_name": spool.color_name,
            "color": spool.color,
            "remaining_weight": remaining_weight,
            "threshold": settings.low_filament_threshold,
            "timestamp": datetime.now().isoformat(),
            "source": settings.app_name,
        }

        client = await self._get_client()
        response = await client.post(webhook_url, json=data)
        if response.status_code >= 300:
            raise NotifierFailure(f"HTTP {response.status_code}: {response.text[:200]}")
        logger.info("Low-stock webhook delivered for spool %d", spool.id)


# Global instance
low_stock_notifier = LowStockNotifier()
