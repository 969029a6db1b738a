"""Booking and class cancellation requests and their review.

Booking cancellations come from customers (one row per missed date,
backed by a medical certificate). Accepting one for a non-subsidised
session awards one class of credit. Class cancellations come from
instructors and, once accepted, remove the date from the session
calendar and its rosters.
"""

from __future__ import annotations

import sqlite3
from datetime import date

import structlog

from sharecrm.core import notifications, schedule
from sharecrm.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from sharecrm.core.storage import DOCUMENT_CONTENT_TYPES, UploadedFile, get_storage
from sharecrm.db import cancellations_repository as repo
from sharecrm.db.catalog_repository import get_session, get_term
from sharecrm.db.customers_repository import increment_credit
from sharecrm.db.database import get_db
from sharecrm.db.enrollments_repository import get_booking
from sharecrm.utils.validators import new_id

logger = structlog.get_logger(__name__)

REVIEW_STATUSES = ("accepted", "rejected")


def _check_review_status(status: str) -> None:
    if status not in REVIEW_STATUSES:
        raise ValidationError("Status must be 'accepted' or 'rejected'")


# =============================================================================
# BOOKING CANCELLATIONS
# =============================================================================


def request_booking_cancellation(
    customer_id: str,
    enrollment_session_id: str,
    dates: list[date],
    reason: str,
    certificate: UploadedFile | None,
    today: date | None = None,
) -> list[repo.BookingCancellationRecord]:
    """Request to skip one or more dated classes of a booking.

    Args:
        customer_id: Customer making the request (must own the booking)
        enrollment_session_id: Booking the dates belong to
        dates: Class dates to cancel
        reason: Why the customer cannot attend
        certificate: Medical certificate, an image or PDF of at most 5 MB
        today: Reference date; past dates cannot be cancelled

    Returns:
        One pending record per date

    Raises:
        NotFoundError: If the booking does not belong to the customer
        ValidationError: If dates, reason or certificate are invalid
        ConflictError: If a date was already requested
    """
    today = today or date.today()
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required")
    if certificate is None:
        raise ValidationError("A medical certificate is required")
    unique = sorted(set(dates))
    if not unique:
        raise ValidationError("Select at least one date to cancel")

    with get_db() as conn:
        booking = get_booking(conn, enrollment_session_id)
        if booking is None or booking.customer_id != customer_id:
            raise NotFoundError("Booking", enrollment_session_id)
        if booking.enrollment_status != "active":
            raise ValidationError("Only bookings of active enrollments can be cancelled")
        session = get_session(conn, booking.session_id)
        term = get_term(conn, session.term_id)
        cancelled = repo.cancelled_class_dates(conn, session.id)
        covered = set(schedule.covered_dates(booking, term, session.day_of_week, cancelled))

    invalid = [d.isoformat() for d in unique if d not in covered or d < today]
    if invalid:
        raise ValidationError(f"Date(s) {', '.join(invalid)} are not upcoming dates of this booking")

    storage = get_storage()
    certificate_path = storage.upload(
        "medical-certificates",
        certificate.filename,
        certificate.data,
        certificate.content_type,
        allowed_types=DOCUMENT_CONTENT_TYPES,
        folder=customer_id,
    )

    ids = [new_id() for _ in unique]
    try:
        with get_db() as conn:
            for cancellation_id, class_date in zip(ids, unique):
                repo.insert_booking_cancellation(
                    conn, cancellation_id, enrollment_session_id, class_date, reason, certificate_path
                )
            created = [repo.get_booking_cancellation(conn, cid) for cid in ids]
    except sqlite3.IntegrityError:
        storage.delete("medical-certificates", certificate_path)
        raise ConflictError("A cancellation was already requested for one of these dates") from None

    logger.info(
        "booking_cancellations.requested",
        enrollment_session_id=enrollment_session_id,
        dates=len(unique),
    )
    return created


def review_booking_cancellation(
    cancellation_id: str,
    status: str,
    admin_notes: str | None = None,
) -> repo.BookingCancellationRecord:
    """Accept or reject a pending booking cancellation.

    The status change only applies to a pending row and the credit
    increment runs in the same transaction, so reviewing twice can never
    award credit twice.

    Raises:
        NotFoundError: If the request does not exist
        ConflictError: If it was already reviewed
    """
    _check_review_status(status)
    with get_db() as conn:
        cancellation = repo.get_booking_cancellation(conn, cancellation_id)
        if cancellation is None:
            raise NotFoundError("Booking cancellation", cancellation_id)
        if not repo.review_pending_booking_cancellation(conn, cancellation_id, status, admin_notes):
            raise ConflictError("Cancellation request has already been reviewed")
        credited = False
        if status == "accepted" and not cancellation.is_subsidised:
            credited = increment_credit(conn, cancellation.customer_id, 1)
            if credited:
                repo.mark_credit_awarded(conn, cancellation_id)
        cancellation = repo.get_booking_cancellation(conn, cancellation_id)

    logger.info(
        "booking_cancellations.reviewed",
        cancellation_id=cancellation_id,
        status=status,
        credit_awarded=credited,
    )
    return cancellation


def list_booking_cancellations(
    status: str | None = None,
    customer_id: str | None = None,
) -> list[repo.BookingCancellationRecord]:
    with get_db() as conn:
        return repo.list_booking_cancellations(conn, status, customer_id)


def pending_booking_cancellations() -> list[repo.BookingCancellationRecord]:
    return list_booking_cancellations(status="pending")


# =============================================================================
# CLASS CANCELLATIONS
# =============================================================================


def request_class_cancellation(
    instructor_id: str,
    session_id: str,
    dates: list[date],
    reason: str,
) -> list[repo.ClassCancellationRecord]:
    """Instructor request to cancel dated classes of their session.

    Raises:
        PermissionDeniedError: If the instructor does not teach the session
        ValidationError: If a date is not a class date or the reason is empty
        ConflictError: If a date was already requested
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required")
    unique = sorted(set(dates))
    if not unique:
        raise ValidationError("Select at least one date to cancel")

    ids = [new_id() for _ in unique]
    try:
        with get_db() as conn:
            session = get_session(conn, session_id)
            if session is None:
                raise NotFoundError("Session", session_id)
            if session.instructor_id != instructor_id:
                raise PermissionDeniedError("You are not assigned to this session")
            term = get_term(conn, session.term_id)
            invalid = [d.isoformat() for d in unique if not schedule.is_class_date(term, session.day_of_week, d)]
            if invalid:
                raise ValidationError(f"Date(s) {', '.join(invalid)} are not class dates of '{session.name}'")
            for cancellation_id, class_date in zip(ids, unique):
                repo.insert_class_cancellation(conn, cancellation_id, session_id, instructor_id, class_date, reason)
            created = [repo.get_class_cancellation(conn, cid) for cid in ids]
    except sqlite3.IntegrityError:
        raise ConflictError("A cancellation was already requested for one of these dates") from None

    logger.info("class_cancellations.requested", session_id=session_id, dates=len(unique))
    listed = ", ".join(d.isoformat() for d in unique)
    notifications.notify(
        "class_cancellation",
        f"Class cancellation requested: {session.name}",
        f"<p>{session.instructor_name} asked to cancel {session.name} on {listed}.</p><p>{reason}</p>",
    )
    return created


def review_class_cancellation(
    cancellation_id: str,
    status: str,
    admin_notes: str | None = None,
) -> repo.ClassCancellationRecord:
    _check_review_status(status)
    with get_db() as conn:
        if repo.get_class_cancellation(conn, cancellation_id) is None:
            raise NotFoundError("Class cancellation", cancellation_id)
        if not repo.review_pending_class_cancellation(conn, cancellation_id, status, admin_notes):
            raise ConflictError("Class cancellation has already been reviewed")
        cancellation = repo.get_class_cancellation(conn, cancellation_id)
    logger.info("class_cancellations.reviewed", cancellation_id=cancellation_id, status=status)
    return cancellation


def list_class_cancellations(
    status: str | None = None,
    session_id: str | None = None,
) -> list[repo.ClassCancellationRecord]:
    with get_db() as conn:
        return repo.list_class_cancellations(conn, status, session_id)
