"""Fee quotes and enrollment creation.

An enrollment is one ``enrollments`` row, one booking per selected
session and (except for free trial-only portal enrollments) one payment
row. All of them are written inside a single transaction.

Fees per booking:
- trial: free
- partial: fee_amount / weeks_in_term * number of dates
- full: fee_amount

Amounts are Decimals rounded half-up to cents.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

import structlog

from sharecrm.config.app_config import load_app_config
from sharecrm.core import notifications, schedule
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError
from sharecrm.core.payments import generate_payment_intent_id, generate_receipt_number
from sharecrm.db import enrollments_repository as repo
from sharecrm.db.cancellations_repository import cancelled_class_dates
from sharecrm.db.catalog_repository import SessionRecord, get_session, get_term
from sharecrm.db.customers_repository import CustomerRecord, get_customer
from sharecrm.db.database import get_db
from sharecrm.utils.validators import new_id, parse_date, utc_now_iso

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
DIRECT_PAYMENT_METHODS = ("cash", "cheque")
BOOKING_TYPES = ("full", "trial", "partial")


@dataclass
class EnrollmentLine:
    """One requested session booking."""

    session_id: str
    enrollment_type: Literal["full", "trial", "partial"] = "full"
    trial_date: date | None = None
    partial_dates: list[date] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnrollmentLine:
        return cls(
            session_id=data.get("session_id", ""),
            enrollment_type=data.get("enrollment_type", "full"),
            trial_date=parse_date(data["trial_date"], "trial_date") if data.get("trial_date") else None,
            partial_dates=[parse_date(d, "partial_dates") for d in data.get("partial_dates") or []],
        )


@dataclass
class QuoteLine:
    session_id: str
    session_name: str
    enrollment_type: str
    dates: list[date]
    fee: Decimal


@dataclass
class Quote:
    lines: list[QuoteLine]

    @property
    def total(self) -> Decimal:
        return sum((line.fee for line in self.lines), Decimal("0.00")).quantize(CENT)


@dataclass
class EnrollmentOutcome:
    """Result of creating an enrollment."""

    detail: repo.EnrollmentDetail
    quote: Quote
    payment_intent: str | None = None
    currency: str | None = None

    @property
    def amount_due(self) -> Decimal:
        return self.quote.total


def to_money(value: float | Decimal | str) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def line_fee(session: SessionRecord, enrollment_type: str, date_count: int, weeks: int) -> Decimal:
    """Fee for one booking line."""
    fee = Decimal(str(session.fee_amount))
    if enrollment_type == "trial":
        return Decimal("0.00")
    if enrollment_type == "partial":
        return (fee * date_count / Decimal(weeks)).quantize(CENT, rounding=ROUND_HALF_UP)
    return fee.quantize(CENT, rounding=ROUND_HALF_UP)


def quote(lines: list[EnrollmentLine], today: date | None = None) -> Quote:
    """Validate lines and price them without writing anything."""
    with get_db() as conn:
        return _build_quote(conn, lines, today or date.today())


def _build_quote(conn: sqlite3.Connection, lines: list[EnrollmentLine], today: date) -> Quote:
    if not lines:
        raise ValidationError("Select at least one class to enroll")

    seen: set[str] = set()
    priced: list[QuoteLine] = []
    for line in lines:
        if line.session_id in seen:
            raise ValidationError(f"Session '{line.session_id}' is selected more than once")
        seen.add(line.session_id)
        if line.enrollment_type not in BOOKING_TYPES:
            raise ValidationError(f"Invalid enrollment type '{line.enrollment_type}'")

        session = get_session(conn, line.session_id)
        if session is None:
            raise NotFoundError("Session", line.session_id)
        term = get_term(conn, session.term_id)
        available = schedule.class_dates(term, session.day_of_week, cancelled_class_dates(conn, session.id))
        upcoming = {d for d in available if d >= today}

        if line.enrollment_type == "trial":
            if line.trial_date is None:
                raise ValidationError(f"A trial date is required for '{session.name}'")
            _require_bookable(session, [line.trial_date], upcoming)
            dates = [line.trial_date]
        elif line.enrollment_type == "partial":
            dates = sorted(set(line.partial_dates))
            if not dates:
                raise ValidationError(f"Select at least one date for '{session.name}'")
            if len(dates) != len(line.partial_dates):
                raise ValidationError(f"Duplicate dates selected for '{session.name}'")
            _require_bookable(session, dates, upcoming)
        else:
            dates = sorted(upcoming)
            if not dates:
                raise ValidationError(f"'{session.name}' has no remaining classes this term")
            if session.class_capacity is not None:
                taken = repo.count_live_full_bookings(conn, session.id)
                if taken >= session.class_capacity:
                    raise ConflictError(f"'{session.name}' is full")

        fee = line_fee(session, line.enrollment_type, len(dates), schedule.weeks_in_term(term))
        priced.append(QuoteLine(session.id, session.name, line.enrollment_type, dates, fee))
    return Quote(priced)


def _require_bookable(session: SessionRecord, dates: list[date], upcoming: set[date]) -> None:
    invalid = [d.isoformat() for d in dates if d not in upcoming]
    if invalid:
        raise ValidationError(
            f"Date(s) {', '.join(invalid)} are not upcoming class dates of '{session.name}'"
        )


def _check_customer(conn: sqlite3.Connection, customer_id: str, lines: list[EnrollmentLine], require_paq: bool) -> CustomerRecord:
    customer = get_customer(conn, customer_id)
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    if customer.status != "active":
        raise ValidationError(f"Customer is {customer.status} and cannot be enrolled")
    if require_paq and customer.paq_status != "accepted":
        raise ValidationError("Your PAQ form must be approved before enrolling")
    for line in lines:
        if repo.customer_has_live_booking(conn, customer_id, line.session_id):
            raise ConflictError(f"Customer is already enrolled in session '{line.session_id}'")
    return customer


def _insert_bookings(conn: sqlite3.Connection, enrollment_id: str, lines: list[EnrollmentLine], priced: Quote) -> None:
    booked_at = utc_now_iso()
    for line, quoted in zip(lines, priced.lines):
        repo.insert_booking(
            conn,
            new_id(),
            enrollment_id,
            line.session_id,
            line.enrollment_type,
            float(quoted.fee),
            trial_date=line.trial_date if line.enrollment_type == "trial" else None,
            partial_dates=quoted.dates if line.enrollment_type == "partial" else None,
            booking_date=booked_at,
        )


def _detail(conn: sqlite3.Connection, enrollment_id: str) -> repo.EnrollmentDetail:
    return repo.EnrollmentDetail(
        enrollment=repo.get_enrollment(conn, enrollment_id),
        bookings=repo.list_bookings(conn, enrollment_id),
        payments=repo.list_payments(conn, enrollment_id),
    )


def create_direct_enrollment(
    customer_id: str,
    lines: list[EnrollmentLine],
    payment_method: str,
    notes: str | None = None,
    today: date | None = None,
) -> EnrollmentOutcome:
    """Enroll a customer at the front desk, paid in cash or by cheque.

    Args:
        customer_id: Customer to enroll
        lines: Requested bookings
        payment_method: 'cash' or 'cheque'
        notes: Optional note stored on the payment
        today: Reference date for upcoming-class checks

    Raises:
        ValidationError: If no lines are given or a line is invalid
        ConflictError: If a session is full or already booked
    """
    if payment_method not in DIRECT_PAYMENT_METHODS:
        raise ValidationError("Payment method must be 'cash' or 'cheque'")

    enrollment_id = new_id()
    with get_db() as conn:
        _check_customer(conn, customer_id, lines, require_paq=False)
        priced = _build_quote(conn, lines, today or date.today())
        repo.insert_enrollment(conn, enrollment_id, customer_id, "direct", "active", "paid")
        _insert_bookings(conn, enrollment_id, lines, priced)
        repo.insert_payment(
            conn,
            new_id(),
            enrollment_id,
            float(priced.total),
            payment_method,
            "completed",
            generate_receipt_number(),
            payment_date=utc_now_iso(),
            notes=notes,
        )
        detail = _detail(conn, enrollment_id)

    logger.info(
        "enrollments.created",
        enrollment_id=enrollment_id,
        enrollment_type="direct",
        bookings=len(lines),
        total=str(priced.total),
    )
    _notify_created(detail, priced)
    return EnrollmentOutcome(detail=detail, quote=priced)


def create_portal_enrollment(
    customer_id: str,
    lines: list[EnrollmentLine],
    today: date | None = None,
) -> EnrollmentOutcome:
    """Self-service enrollment from the customer portal.

    Free (trial-only) enrollments are activated immediately. Otherwise
    the enrollment stays pending with a card payment awaiting the
    processor's confirmation; the returned payment intent id and amount
    are handed to the client to complete payment.

    Raises:
        ValidationError: If the PAQ is not approved or a line is invalid
        ConflictError: If a session is full or already booked
    """
    enrollment_id = new_id()
    payment_intent = None
    with get_db() as conn:
        _check_customer(conn, customer_id, lines, require_paq=True)
        priced = _build_quote(conn, lines, today or date.today())
        if priced.total == 0:
            repo.insert_enrollment(conn, enrollment_id, customer_id, "portal", "active", "paid")
            _insert_bookings(conn, enrollment_id, lines, priced)
        else:
            payment_intent = generate_payment_intent_id()
            repo.insert_enrollment(
                conn, enrollment_id, customer_id, "portal", "pending", "pending", payment_intent
            )
            _insert_bookings(conn, enrollment_id, lines, priced)
            repo.insert_payment(
                conn,
                new_id(),
                enrollment_id,
                float(priced.total),
                "card",
                "pending",
                generate_receipt_number(),
                transaction_id=payment_intent,
            )
        detail = _detail(conn, enrollment_id)

    logger.info(
        "enrollments.created",
        enrollment_id=enrollment_id,
        enrollment_type="portal",
        bookings=len(lines),
        total=str(priced.total),
    )
    _notify_created(detail, priced)
    return EnrollmentOutcome(
        detail=detail,
        quote=priced,
        payment_intent=payment_intent,
        currency=load_app_config().payments.currency if payment_intent else None,
    )


def get_enrollment(enrollment_id: str) -> repo.EnrollmentDetail:
    with get_db() as conn:
        if repo.get_enrollment(conn, enrollment_id) is None:
            raise NotFoundError("Enrollment", enrollment_id)
        return _detail(conn, enrollment_id)


def list_enrollments(customer_id: str | None = None, status: str | None = None) -> list[repo.EnrollmentRecord]:
    with get_db() as conn:
        return repo.list_enrollments(conn, customer_id, status)


def list_customer_enrollments(customer_id: str) -> list[repo.EnrollmentDetail]:
    with get_db() as conn:
        return [_detail(conn, e.id) for e in repo.list_enrollments(conn, customer_id=customer_id)]


def cancel_enrollment(enrollment_id: str) -> repo.EnrollmentDetail:
    """Cancel an enrollment; a payment still pending is cancelled with it."""
    with get_db() as conn:
        enrollment = repo.get_enrollment(conn, enrollment_id)
        if enrollment is None:
            raise NotFoundError("Enrollment", enrollment_id)
        if enrollment.status == "cancelled":
            raise ConflictError("Enrollment is already cancelled")
        payment_status = enrollment.payment_status
        for payment in repo.list_payments(conn, enrollment_id):
            if payment.payment_status == "pending":
                repo.update_payment_status(conn, payment.id, "cancelled")
                payment_status = "cancelled"
        repo.update_enrollment_status(conn, enrollment_id, "cancelled", payment_status)
        detail = _detail(conn, enrollment_id)
    logger.info("enrollments.cancelled", enrollment_id=enrollment_id)
    return detail


def _notify_created(detail: repo.EnrollmentDetail, priced: Quote) -> None:
    enrollment = detail.enrollment
    classes = "".join(f"<li>{line.session_name} ({line.enrollment_type})</li>" for line in priced.lines)
    notifications.notify(
        "enrollments",
        f"New enrollment: {enrollment.customer_name}",
        f"<p>{enrollment.customer_name} enrolled ({enrollment.enrollment_type}, "
        f"${priced.total}):</p><ul>{classes}</ul>",
    )
