"""
Notification Service - alert emails

Email is a best-effort side channel: every failure is logged and swallowed so
that a broken SMTP server never fails a stock or movement operation.
"""
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Iterable, Optional

from app.core.config import settings
from app.models.alert import AlertType

logger = logging.getLogger(__name__)


def is_email_configured() -> bool:
    return bool(settings.SMTP_HOST and (settings.SMTP_FROM or settings.SMTP_USER))


def _build_message(to_email: str, subject: str, html: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = f"PharmaTrack <{settings.SMTP_FROM or settings.SMTP_USER}>"
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content("This message requires an HTML capable mail client.")
    msg.add_alternative(html, subtype="html")
    return msg


def send_email(to_email: str, subject: str, html: str) -> None:
    """Send one HTML email. Raises on SMTP errors."""
    msg = _build_message(to_email, subject, html)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        if settings.SMTP_USE_TLS:
            server.starttls(context=ssl.create_default_context())
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)


def send_alert_email(to_email: str, subject: str, html: str) -> bool:
    """Send one email, logging instead of raising. Returns True when sent."""
    if not is_email_configured():
        logger.info("Email service not configured, skipping email")
        return False
    try:
        send_email(to_email, subject, html)
    except Exception as e:
        logger.error(f"Email send error to {to_email}: {e}")
        return False
    logger.info(f"Alert email sent to {to_email}")
    return True


def render_low_stock_email(drug) -> tuple:
    subject = f"Low Stock Alert: {drug.name}"
    html = f"""
    <h2>Low Stock Alert</h2>
    <p>The following drug is running low on stock:</p>
    <ul>
      <li><strong>Drug:</strong> {drug.name}</li>
      <li><strong>Batch:</strong> {drug.batch_no}</li>
      <li><strong>Current Quantity:</strong> {drug.quantity}</li>
      <li><strong>Threshold:</strong> {drug.min_threshold}</li>
      <li><strong>Location:</strong> {drug.location}</li>
    </ul>
    <p>Please reorder immediately.</p>
    """
    return subject, html


def render_expiry_email(drug) -> tuple:
    subject = f"Expiry Alert: {drug.name}"
    html = f"""
    <h2>Drug Expiry Alert</h2>
    <p>The following drug is expiring soon:</p>
    <ul>
      <li><strong>Drug:</strong> {drug.name}</li>
      <li><strong>Batch:</strong> {drug.batch_no}</li>
      <li><strong>Expiry Date:</strong> {drug.expiry_date.isoformat()}</li>
      <li><strong>Days Remaining:</strong> {drug.days_until_expiry}</li>
      <li><strong>Quantity:</strong> {drug.quantity}</li>
    </ul>
    <p>Please take necessary action.</p>
    """
    return subject, html


def render_alert_email(alert, drug) -> Optional[tuple]:
    if alert.type == AlertType.LOW_STOCK.value:
        return render_low_stock_email(drug)
    if alert.type == AlertType.EXPIRY.value:
        return render_expiry_email(drug)
    return None


def notify_recipients(subject: str, html: str, recipients: Iterable[str]) -> int:
    """One email per recipient; returns how many were sent"""
    sent = 0
    for email in recipients:
        if email and send_alert_email(email, subject, html):
            sent += 1
    return sent

