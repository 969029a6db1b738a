"""Receipts and payment processor webhook events.

Card payments are confirmed asynchronously: the processor posts signed
``payment_intent.*`` and ``charge.*`` events and ``handle_event`` moves
the matching payment and enrollment to their next state.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import sqlite3
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import structlog

from sharecrm.core import notifications
from sharecrm.core.errors import PaymentSignatureError
from sharecrm.db import enrollments_repository as repo
from sharecrm.db.database import get_db
from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)

RECEIPT_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class Transition:
    """State change an event applies to an enrollment and its card payment."""

    from_payment_status: str
    from_status: str | None
    payment_status: str
    enrollment_status: str | None
    enrollment_payment_status: str


# Intent outcomes only settle a pending enrollment; refunds and disputes
# only apply to a paid one. A None status leaves enrollments.status alone.
EVENT_TRANSITIONS: dict[str, Transition] = {
    "payment_intent.succeeded": Transition("pending", "pending", "completed", "active", "paid"),
    "payment_intent.payment_failed": Transition("pending", "pending", "failed", "cancelled", "failed"),
    "payment_intent.canceled": Transition("pending", "pending", "cancelled", "cancelled", "cancelled"),
    "charge.refunded": Transition("paid", None, "refunded", "cancelled", "refunded"),
    "charge.dispute.created": Transition("paid", None, "disputed", None, "disputed"),
}


@dataclass
class EventResult:
    """Outcome of processing one webhook event."""

    event_type: str
    handled: bool
    enrollment_id: str | None = None
    message: str = ""


def generate_receipt_number(now: datetime | None = None) -> str:
    """Receipt number in the form RCP-YYYYMMDD-XXXXXX."""
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    suffix = "".join(secrets.choice(RECEIPT_ALPHABET) for _ in range(6))
    return f"RCP-{stamp}-{suffix}"


def generate_payment_intent_id() -> str:
    return f"pi_{secrets.token_hex(12)}"


def sign_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a signature header value for a payload.

    Returns:
        Header value ``t=<unix>,v1=<hex>``
    """
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def verify_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    tolerance: int = 300,
    now: float | None = None,
) -> None:
    """Verify a webhook signature header.

    Args:
        payload: Raw request body
        header: ``t=<unix>,v1=<hex hmac-sha256 of "t.payload">``
        secret: Shared webhook secret
        tolerance: Maximum age of the timestamp in seconds
        now: Current unix time (defaults to time.time())

    Raises:
        PaymentSignatureError: If the header is missing, malformed, stale
            or does not match
    """
    if not secret:
        raise PaymentSignatureError("Webhook secret is not configured")
    if not header:
        raise PaymentSignatureError("Missing signature header")

    timestamp: int | None = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise PaymentSignatureError("Malformed signature timestamp") from None
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise PaymentSignatureError("Malformed signature header")

    current = now if now is not None else time.time()
    if abs(current - timestamp) > tolerance:
        raise PaymentSignatureError("Signature timestamp outside tolerance")

    expected = sign_payload(payload, secret, timestamp).split("v1=", 1)[1]
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise PaymentSignatureError("Signature mismatch")


def _find_enrollment(
    conn: sqlite3.Connection, event_type: str, obj: dict[str, Any]
) -> repo.EnrollmentRecord | None:
    """Locate the enrollment an event refers to.

    ``payment_intent.*`` objects carry the intent id; charges and disputes
    point back to it through ``payment_intent`` or carry the enrollment id
    in their metadata.
    """
    if event_type.startswith("payment_intent."):
        intent_id = obj.get("id")
    else:
        intent_id = obj.get("payment_intent")
    if intent_id:
        found = repo.get_enrollment_by_intent(conn, intent_id)
        if found is not None:
            return found
    enrollment_id = (obj.get("metadata") or {}).get("enrollment_id")
    return repo.get_enrollment(conn, enrollment_id) if enrollment_id else None


def handle_event(event: dict[str, Any]) -> EventResult:
    """Apply a verified processor event.

    Unknown event types and unknown intents are acknowledged without
    changes. Each transition only applies from the state it expects, so
    replays and late events for enrollments that moved on are ignored.
    """
    event_type = event.get("type", "")
    transition = EVENT_TRANSITIONS.get(event_type)
    if transition is None:
        logger.debug("payments.event_ignored", event_type=event_type)
        return EventResult(event_type, handled=False, message="Event type ignored")

    obj = (event.get("data") or {}).get("object") or {}

    with get_db() as conn:
        enrollment = _find_enrollment(conn, event_type, obj)
        if enrollment is None:
            logger.warning("payments.unknown_intent", object_id=obj.get("id"), event_type=event_type)
            return EventResult(event_type, handled=False, message="Unknown payment intent")

        applied = repo.transition_enrollment(
            conn,
            enrollment.id,
            from_payment_status=transition.from_payment_status,
            from_status=transition.from_status,
            payment_status=transition.enrollment_payment_status,
            status=transition.enrollment_status,
        )
        if not applied:
            if enrollment.payment_status == transition.enrollment_payment_status:
                message = "Already processed"
            else:
                message = f"Enrollment is {enrollment.status} ({enrollment.payment_status})"
            logger.info(
                "payments.event_skipped",
                event_type=event_type,
                enrollment_id=enrollment.id,
                status=enrollment.status,
                payment_status=enrollment.payment_status,
            )
            return EventResult(event_type, handled=False, enrollment_id=enrollment.id, message=message)

        payment = next(
            (p for p in repo.list_payments(conn, enrollment.id) if p.payment_method == "card"),
            None,
        )
        if payment is not None:
            completed = transition.payment_status == "completed"
            repo.update_payment_status(
                conn,
                payment.id,
                transition.payment_status,
                transaction_id=(obj.get("latest_charge") or obj.get("id")) if completed else None,
                payment_date=utc_now_iso() if completed else None,
            )

    logger.info(
        "payments.event_applied",
        event_type=event_type,
        enrollment_id=enrollment.id,
        payment_status=transition.payment_status,
    )
    amount = payment.amount if payment is not None else 0
    if transition.payment_status == "completed":
        notifications.notify(
            "payments",
            f"Payment received: {enrollment.customer_name}",
            f"<p>{enrollment.customer_name} paid ${amount:.2f} for enrollment {enrollment.id}.</p>",
        )
    elif transition.payment_status in ("refunded", "disputed"):
        notifications.notify(
            "payments",
            f"Payment {transition.payment_status}: {enrollment.customer_name}",
            f"<p>The ${amount:.2f} card payment for enrollment {enrollment.id} "
            f"was {transition.payment_status}.</p>",
        )
    return EventResult(event_type, handled=True, enrollment_id=enrollment.id, message="Processed")
