"""Rosters, attendance marking and attendance summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

import structlog

from sharecrm.core import schedule
from sharecrm.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from sharecrm.db import enrollments_repository as repo
from sharecrm.db.cancellations_repository import (
    accepted_booking_cancellation_dates,
    cancelled_class_dates,
)
from sharecrm.db.catalog_repository import SessionRecord, TermRecord, get_session, get_term, list_sessions
from sharecrm.db.database import get_db

logger = structlog.get_logger(__name__)

ATTENDANCE_STATUSES = ("present", "absent", "late")


@dataclass
class RosterEntry:
    """A customer expected at one dated class."""

    enrollment_session_id: str
    customer_id: str
    customer_name: str
    customer_email: str
    contact_no: str | None
    enrollment_type: str
    status: str | None = None


@dataclass
class AttendanceSummary:
    """Attendance of one booking over a date range."""

    booking: repo.BookingRecord
    session: SessionRecord
    records: list[repo.AttendanceRecord] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for record in self.records if record.status == status)

    @property
    def present(self) -> int:
        return self.count("present")

    @property
    def absent(self) -> int:
        return self.count("absent")

    @property
    def late(self) -> int:
        return self.count("late")

    @property
    def total(self) -> int:
        return len(self.records)


@dataclass
class HistoryEntry:
    session_id: str
    session_name: str
    class_date: date
    present: int
    absent: int
    late: int
    total: int


def _load_class(conn, session_id: str, class_date: date) -> tuple[SessionRecord, TermRecord]:
    session = get_session(conn, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)
    term = get_term(conn, session.term_id)
    if not schedule.is_class_date(term, session.day_of_week, class_date):
        raise ValidationError(f"{class_date.isoformat()} is not a class date of '{session.name}'")
    if class_date in cancelled_class_dates(conn, session_id):
        raise ValidationError(f"The class on {class_date.isoformat()} was cancelled")
    return session, term


def roster(session_id: str, class_date: date, instructor_id: str | None = None) -> list[RosterEntry]:
    """Customers expected at a dated class.

    Includes bookings of active enrollments covering the date, minus
    accepted booking cancellations for it, with any attendance already
    marked.

    Args:
        session_id: Session
        class_date: One class date of the session
        instructor_id: When given, the session must be taught by this instructor

    Raises:
        NotFoundError: If the session does not exist
        PermissionDeniedError: If the instructor does not teach the session
        ValidationError: If the date is not a (non-cancelled) class date
    """
    with get_db() as conn:
        session, term = _load_class(conn, session_id, class_date)
        if instructor_id is not None and session.instructor_id != instructor_id:
            raise PermissionDeniedError("You are not assigned to this session")

        bookings = [
            b
            for b in repo.list_session_bookings(conn, session_id)
            if schedule.booking_covers_date(b, class_date, term, session.day_of_week)
        ]
        ids = [b.id for b in bookings]
        skipped = accepted_booking_cancellation_dates(conn, ids)
        marks = {
            record.enrollment_session_id: record.status
            for record in repo.list_attendance(conn, ids, class_date, class_date)
        }

    return [
        RosterEntry(
            enrollment_session_id=b.id,
            customer_id=b.customer_id,
            customer_name=b.customer_name,
            customer_email=b.customer_email,
            contact_no=b.customer_contact,
            enrollment_type=b.enrollment_type,
            status=marks.get(b.id),
        )
        for b in bookings
        if (b.id, class_date) not in skipped
    ]


def mark_attendance(
    enrollment_session_id: str,
    class_date: date,
    status: str,
    marked_by: str | None,
    instructor_id: str | None = None,
) -> repo.AttendanceRecord:
    """Record (or overwrite) a customer's attendance for one class.

    Raises:
        ValidationError: If the status is unknown or the booking does not cover the date
        PermissionDeniedError: If the instructor does not teach the session
    """
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ATTENDANCE_STATUSES)}")
    with get_db() as conn:
        booking = repo.get_booking(conn, enrollment_session_id)
        if booking is None:
            raise NotFoundError("Booking", enrollment_session_id)
        session, term = _load_class(conn, booking.session_id, class_date)
        if instructor_id is not None and session.instructor_id != instructor_id:
            raise PermissionDeniedError("You are not assigned to this session")
        if not schedule.booking_covers_date(booking, class_date, term, session.day_of_week):
            raise ValidationError(f"Booking does not cover {class_date.isoformat()}")
        repo.upsert_attendance(conn, enrollment_session_id, class_date, status, marked_by)
        record = repo.list_attendance(conn, [enrollment_session_id], class_date, class_date)[0]
    logger.info(
        "attendance.marked",
        enrollment_session_id=enrollment_session_id,
        class_date=class_date.isoformat(),
        status=status,
    )
    return record


def attendance_report(start: date, end: date, session_id: str | None = None) -> list[AttendanceSummary]:
    """One summary per active booking with its attendance between start and end."""
    if start > end:
        raise ValidationError("Start date must be on or before end date")
    with get_db() as conn:
        if session_id:
            session = get_session(conn, session_id)
            if session is None:
                raise NotFoundError("Session", session_id)
            sessions = {session.id: session}
        else:
            sessions = {s.id: s for s in list_sessions(conn)}
        bookings = repo.list_bookings_for_sessions(conn, list(sessions))
        records = repo.list_attendance(conn, [b.id for b in bookings], start, end)

    by_booking: dict[str, list[repo.AttendanceRecord]] = {}
    for record in records:
        by_booking.setdefault(record.enrollment_session_id, []).append(record)
    return [
        AttendanceSummary(booking=b, session=sessions[b.session_id], records=by_booking.get(b.id, []))
        for b in bookings
    ]


def instructor_history(instructor_id: str) -> list[HistoryEntry]:
    with get_db() as conn:
        rows = repo.attendance_counts(conn, instructor_id)
    return [
        HistoryEntry(
            session_id=row["session_id"],
            session_name=row["session_name"],
            class_date=date.fromisoformat(row["class_date"]),
            present=row["present"] or 0,
            absent=row["absent"] or 0,
            late=row["late"] or 0,
            total=row["total"],
        )
        for row in rows
    ]
