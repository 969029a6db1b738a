"""Emailing lists and SMTP delivery.

Staff subscribe addresses to named lists; business operations call
``notify`` and every address on the list gets a short HTML email.
Delivery failures are logged and never abort the calling operation.
"""

from __future__ import annotations

import smtplib
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr

import structlog

from sharecrm.config.app_config import EmailConfig, load_app_config
from sharecrm.core.errors import ValidationError
from sharecrm.db.database import get_db
from sharecrm.db.documents_repository import (
    get_emailing_lists,
    get_list_addresses,
    replace_list,
)
from sharecrm.utils.validators import normalize_email, validate_email

logger = structlog.get_logger(__name__)

LIST_NAMES = (
    "enrollments",
    "paq_forms",
    "payments",
    "class_cancellation",
    "customer_profile_updates",
)


def get_lists() -> dict[str, list[str]]:
    """Return every emailing list, including empty ones."""
    with get_db() as conn:
        stored = get_emailing_lists(conn)
    return {name: stored.get(name, []) for name in LIST_NAMES}


def set_list(list_name: str, emails: list[str]) -> list[str]:
    """Replace the addresses of one list.

    Raises:
        ValidationError: If the list name or any address is invalid
    """
    if list_name not in LIST_NAMES:
        raise ValidationError(f"Unknown emailing list '{list_name}'")

    cleaned: list[str] = []
    for email in emails:
        if not validate_email(email):
            raise ValidationError(f"Invalid email address '{email}'")
        normalized = normalize_email(email)
        if normalized not in cleaned:
            cleaned.append(normalized)

    with get_db() as conn:
        replace_list(conn, list_name, cleaned)
    logger.info("emailing_list.updated", list_name=list_name, count=len(cleaned))
    return sorted(cleaned)


def notify(list_name: str, subject: str, html: str) -> int:
    """Email every address on a list.

    Returns:
        Number of recipients the message was handed to (0 when email is
        disabled, the list is empty or delivery failed)
    """
    with get_db() as conn:
        recipients = get_list_addresses(conn, list_name)
    if not recipients:
        logger.debug("notify.no_recipients", list_name=list_name)
        return 0

    config = load_app_config().email
    if not config.enabled:
        logger.info("notify.skipped", list_name=list_name, reason="email disabled")
        return 0

    try:
        _send(config, recipients, subject, html)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("notify.failed", list_name=list_name, error=str(e))
        return 0

    logger.info("notify.sent", list_name=list_name, recipients=len(recipients))
    return len(recipients)


def _send(config: EmailConfig, recipients: list[str], subject: str, html: str) -> None:
    msg = MIMEText(html, "html", "utf-8")
    msg["Subject"] = subject
    name, address = parseaddr(config.sender)
    msg["From"] = formataddr((name, address))
    msg["To"] = ", ".join(recipients)

    with smtplib.SMTP(config.host, config.port, timeout=10) as server:
        if config.use_tls:
            server.starttls()
        password = config.get_password()
        if config.username and password:
            server.login(config.username, password)
        server.send_message(msg)
