"""Repository functions for booking and class cancellations."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Any

import structlog

from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class BookingCancellationRecord:
    """Customer request to skip one dated class of a booking."""

    id: str
    enrollment_session_id: str
    class_date: date
    reason: str
    medical_certificate_path: str | None
    status: str
    admin_notes: str | None
    credit_awarded: bool
    requested_at: str
    reviewed_at: str | None
    session_id: str = ""
    session_name: str = ""
    is_subsidised: bool = False
    customer_id: str = ""
    customer_name: str = ""


@dataclass
class ClassCancellationRecord:
    """Instructor request to cancel one dated class of a session."""

    id: str
    session_id: str
    instructor_id: str | None
    class_date: date
    reason: str
    status: str
    admin_notes: str | None
    created_at: str
    reviewed_at: str | None
    session_name: str = ""
    venue_name: str = ""
    instructor_name: str = ""


# =============================================================================
# BOOKING CANCELLATIONS
# =============================================================================

_BOOKING_CANCELLATION_SELECT = """
    SELECT bc.*,
           b.session_id AS session_id,
           s.name AS session_name,
           s.is_subsidised AS is_subsidised,
           e.customer_id AS customer_id,
           c.first_name || ' ' || c.surname AS customer_name
    FROM booking_cancellations bc
    JOIN enrollment_sessions b ON b.id = bc.enrollment_session_id
    JOIN enrollments e ON e.id = b.enrollment_id
    JOIN customers c ON c.id = e.customer_id
    JOIN sessions s ON s.id = b.session_id
"""


def insert_booking_cancellation(
    conn: sqlite3.Connection,
    cancellation_id: str,
    enrollment_session_id: str,
    class_date: date,
    reason: str,
    medical_certificate_path: str | None,
) -> None:
    """Insert a pending booking cancellation.

    Raises:
        sqlite3.IntegrityError: If the date is already requested for the booking
    """
    conn.execute(
        """
        INSERT INTO booking_cancellations
            (id, enrollment_session_id, class_date, reason, medical_certificate_path)
        VALUES (?, ?, ?, ?, ?)
        """,
        (cancellation_id, enrollment_session_id, class_date.isoformat(), reason, medical_certificate_path),
    )
    logger.debug("booking_cancellations.inserted", cancellation_id=cancellation_id)


def get_booking_cancellation(conn: sqlite3.Connection, cancellation_id: str) -> BookingCancellationRecord | None:
    row = conn.execute(
        f"{_BOOKING_CANCELLATION_SELECT} WHERE bc.id = ?", (cancellation_id,)
    ).fetchone()
    return _row_to_booking_cancellation(row) if row else None


def list_booking_cancellations(
    conn: sqlite3.Connection,
    status: str | None = None,
    customer_id: str | None = None,
) -> list[BookingCancellationRecord]:
    """List booking cancellations ordered by class date."""
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        clauses.append("bc.status = ?")
        params.append(status)
    if customer_id:
        clauses.append("e.customer_id = ?")
        params.append(customer_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"{_BOOKING_CANCELLATION_SELECT} {where} ORDER BY bc.class_date, bc.requested_at", params
    ).fetchall()
    return [_row_to_booking_cancellation(row) for row in rows]


def review_pending_booking_cancellation(
    conn: sqlite3.Connection,
    cancellation_id: str,
    status: str,
    admin_notes: str | None,
) -> bool:
    """Move a pending request to its reviewed status.

    Returns:
        True if the row was pending and is now updated, False otherwise
    """
    cursor = conn.execute(
        """
        UPDATE booking_cancellations
        SET status = ?, admin_notes = ?, reviewed_at = ?
        WHERE id = ? AND status = 'pending'
        """,
        (status, admin_notes, utc_now_iso(), cancellation_id),
    )
    return cursor.rowcount > 0


def mark_credit_awarded(conn: sqlite3.Connection, cancellation_id: str) -> None:
    conn.execute(
        "UPDATE booking_cancellations SET credit_awarded = 1 WHERE id = ?", (cancellation_id,)
    )


def accepted_booking_cancellation_dates(conn: sqlite3.Connection, enrollment_session_ids: list[str]) -> set[tuple[str, date]]:
    """Return (booking id, class date) pairs with accepted cancellations."""
    if not enrollment_session_ids:
        return set()
    placeholders = ", ".join("?" for _ in enrollment_session_ids)
    rows = conn.execute(
        f"""
        SELECT enrollment_session_id, class_date FROM booking_cancellations
        WHERE status = 'accepted' AND enrollment_session_id IN ({placeholders})
        """,
        enrollment_session_ids,
    ).fetchall()
    return {(row[0], date.fromisoformat(row[1])) for row in rows}


def _row_to_booking_cancellation(row: sqlite3.Row) -> BookingCancellationRecord:
    return BookingCancellationRecord(
        id=row["id"],
        enrollment_session_id=row["enrollment_session_id"],
        class_date=date.fromisoformat(row["class_date"]),
        reason=row["reason"],
        medical_certificate_path=row["medical_certificate_path"],
        status=row["status"],
        admin_notes=row["admin_notes"],
        credit_awarded=bool(row["credit_awarded"]),
        requested_at=row["requested_at"],
        reviewed_at=row["reviewed_at"],
        session_id=row["session_id"],
        session_name=row["session_name"],
        is_subsidised=bool(row["is_subsidised"]),
        customer_id=row["customer_id"],
        customer_name=row["customer_name"] or "",
    )


# =============================================================================
# CLASS CANCELLATIONS
# =============================================================================

_CLASS_CANCELLATION_SELECT = """
    SELECT cc.*,
           s.name AS session_name,
           v.name AS venue_name,
           COALESCE(i.name, '') AS instructor_name
    FROM class_cancellations cc
    JOIN sessions s ON s.id = cc.session_id
    JOIN venues v ON v.id = s.venue_id
    LEFT JOIN instructors i ON i.id = cc.instructor_id
"""


def insert_class_cancellation(
    conn: sqlite3.Connection,
    cancellation_id: str,
    session_id: str,
    instructor_id: str | None,
    class_date: date,
    reason: str,
) -> None:
    """Insert a pending class cancellation.

    Raises:
        sqlite3.IntegrityError: If the session date is already requested
    """
    conn.execute(
        """
        INSERT INTO class_cancellations (id, session_id, instructor_id, class_date, reason)
        VALUES (?, ?, ?, ?, ?)
        """,
        (cancellation_id, session_id, instructor_id, class_date.isoformat(), reason),
    )
    logger.debug("class_cancellations.inserted", cancellation_id=cancellation_id)


def get_class_cancellation(conn: sqlite3.Connection, cancellation_id: str) -> ClassCancellationRecord | None:
    row = conn.execute(
        f"{_CLASS_CANCELLATION_SELECT} WHERE cc.id = ?", (cancellation_id,)
    ).fetchone()
    return _row_to_class_cancellation(row) if row else None


def list_class_cancellations(
    conn: sqlite3.Connection,
    status: str | None = None,
    session_id: str | None = None,
) -> list[ClassCancellationRecord]:
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        clauses.append("cc.status = ?")
        params.append(status)
    if session_id:
        clauses.append("cc.session_id = ?")
        params.append(session_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"{_CLASS_CANCELLATION_SELECT} {where} ORDER BY cc.class_date, s.name", params
    ).fetchall()
    return [_row_to_class_cancellation(row) for row in rows]


def review_pending_class_cancellation(
    conn: sqlite3.Connection,
    cancellation_id: str,
    status: str,
    admin_notes: str | None,
) -> bool:
    cursor = conn.execute(
        """
        UPDATE class_cancellations
        SET status = ?, admin_notes = ?, reviewed_at = ?
        WHERE id = ? AND status = 'pending'
        """,
        (status, admin_notes, utc_now_iso(), cancellation_id),
    )
    return cursor.rowcount > 0


def cancelled_class_dates(conn: sqlite3.Connection, session_id: str) -> set[date]:
    """Dates of a session removed by accepted class cancellations."""
    rows = conn.execute(
        """
        SELECT class_date FROM class_cancellations
        WHERE session_id = ? AND status = 'accepted'
        """,
        (session_id,),
    ).fetchall()
    return {date.fromisoformat(row[0]) for row in rows}


def _row_to_class_cancellation(row: sqlite3.Row) -> ClassCancellationRecord:
    return ClassCancellationRecord(
        id=row["id"],
        session_id=row["session_id"],
        instructor_id=row["instructor_id"],
        class_date=date.fromisoformat(row["class_date"]),
        reason=row["reason"],
        status=row["status"],
        admin_notes=row["admin_notes"],
        created_at=row["created_at"],
        reviewed_at=row["reviewed_at"],
        session_name=row["session_name"],
        venue_name=row["venue_name"],
        instructor_name=row["instructor_name"],
    )
