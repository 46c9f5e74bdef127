"""Email notifications for invoice runs.

Delivery is fire-and-forget: ``send_notification`` logs failures and returns
False, it never raises.
"""

import logging
import smtplib
import ssl
import uuid
from email.message import EmailMessage
from email.utils import formatdate

from .config import Config, EmailConfig

logger = logging.getLogger("seikyu.notifications")


def _sanitize_header(value: str) -> str:
    """Strip newlines from header values to prevent injection."""
    return value.replace("\r", " ").replace("\n", " ").strip()


def _generate_message_id(domain: str) -> str:
    """Generate a unique Message-ID for an email."""
    return f"<{uuid.uuid4().hex}@{domain}>"


def _send_smtp(msg: EmailMessage, config: EmailConfig) -> None:
    """Send an email message via SMTP."""
    # Port 587 typically uses STARTTLS, port 465 uses implicit TLS
    if config.smtp_port == 465:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, context=context) as server:
            if config.smtp_user:
                server.login(config.smtp_user, config.smtp_password)
            server.send_message(msg)
    else:
        with smtplib.SMTP(config.smtp_host, config.smtp_port) as server:
            server.starttls()
            if config.smtp_user:
                server.login(config.smtp_user, config.smtp_password)
            server.send_message(msg)


def send_email(config: EmailConfig, to: str, subject: str, body: str) -> None:
    """Send a plain-text email."""
    from_address = config.effective_from_addr
    domain = from_address.split("@")[-1] if "@" in from_address else "localhost"

    msg = EmailMessage()
    msg["To"] = _sanitize_header(to)
    msg["Subject"] = _sanitize_header(subject)
    msg["From"] = from_address
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = _generate_message_id(domain)
    msg.set_content(body)

    _send_smtp(msg, config)


def send_notification(config: Config, recipient: str, subject: str, body: str) -> bool:
    """Send a notification email. Returns True on success."""
    if not recipient:
        logger.warning("No notification recipient configured; skipping: %s", subject)
        return False

    if not config.email.enabled or not config.email.smtp_host:
        logger.warning("Email not configured for notifications; skipping: %s", subject)
        return False

    try:
        send_email(config.email, recipient, subject, body)
        logger.info("Sent notification to %s: %s", recipient, subject)
        return True
    except Exception as e:
        logger.error("Failed to send notification to %s: %s", recipient, e)
        return False
