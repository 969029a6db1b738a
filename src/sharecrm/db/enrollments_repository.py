"""Repository functions for enrollments, bookings, payments and attendance."""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import structlog

from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)


@dataclass
class EnrollmentRecord:
    id: str
    customer_id: str
    enrollment_type: str
    status: str
    payment_status: str
    payment_intent: str | None
    created_at: str
    updated_at: str
    customer_name: str = ""


@dataclass
class BookingRecord:
    """One enrollment line (enrollment_sessions row) with its context."""

    id: str
    enrollment_id: str
    session_id: str
    enrollment_type: str
    trial_date: date | None
    partial_dates: list[date]
    fee_amount: float
    booking_date: str
    customer_id: str = ""
    customer_name: str = ""
    customer_email: str = ""
    customer_contact: str | None = None
    enrollment_status: str = ""
    session_name: str = ""
    session_code: str = ""


@dataclass
class PaymentRecord:
    id: str
    enrollment_id: str
    amount: float
    payment_method: str
    payment_status: str
    transaction_id: str | None
    receipt_number: str
    payment_date: str | None
    notes: str | None


@dataclass
class AttendanceRecord:
    enrollment_session_id: str
    class_date: date
    status: str
    marked_by: str | None
    marked_at: str


@dataclass
class EnrollmentDetail:
    """Enrollment together with its bookings and payments."""

    enrollment: EnrollmentRecord
    bookings: list[BookingRecord] = field(default_factory=list)
    payments: list[PaymentRecord] = field(default_factory=list)


# =============================================================================
# ENROLLMENTS
# =============================================================================

_ENROLLMENT_SELECT = """
    SELECT e.*, c.first_name || ' ' || c.surname AS customer_name
    FROM enrollments e
    JOIN customers c ON c.id = e.customer_id
"""


def insert_enrollment(
    conn: sqlite3.Connection,
    enrollment_id: str,
    customer_id: str,
    enrollment_type: str,
    status: str,
    payment_status: str,
    payment_intent: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO enrollments
            (id, customer_id, enrollment_type, status, payment_status, payment_intent)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (enrollment_id, customer_id, enrollment_type, status, payment_status, payment_intent),
    )
    logger.debug("enrollments.inserted", enrollment_id=enrollment_id)


def update_enrollment_status(
    conn: sqlite3.Connection,
    enrollment_id: str,
    status: str,
    payment_status: str | None = None,
) -> bool:
    """Set enrollment status and optionally its payment status."""
    if payment_status is None:
        cursor = conn.execute(
            "UPDATE enrollments SET status = ?, updated_at = ? WHERE id = ?",
            (status, utc_now_iso(), enrollment_id),
        )
    else:
        cursor = conn.execute(
            """
            UPDATE enrollments SET status = ?, payment_status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, payment_status, utc_now_iso(), enrollment_id),
        )
    return cursor.rowcount > 0


def transition_enrollment(
    conn: sqlite3.Connection,
    enrollment_id: str,
    from_payment_status: str,
    payment_status: str,
    from_status: str | None = None,
    status: str | None = None,
) -> bool:
    """Move an enrollment on only while it is still in the expected state.

    Returns:
        False if the enrollment had already left ``from_payment_status``
        (or ``from_status``, when given)
    """
    sql = """
        UPDATE enrollments
        SET payment_status = ?, status = COALESCE(?, status), updated_at = ?
        WHERE id = ? AND payment_status = ?
    """
    params: list[Any] = [payment_status, status, utc_now_iso(), enrollment_id, from_payment_status]
    if from_status is not None:
        sql += " AND status = ?"
        params.append(from_status)
    return conn.execute(sql, params).rowcount > 0


def get_enrollment(conn: sqlite3.Connection, enrollment_id: str) -> EnrollmentRecord | None:
    row = conn.execute(f"{_ENROLLMENT_SELECT} WHERE e.id = ?", (enrollment_id,)).fetchone()
    return _row_to_enrollment(row) if row else None


def get_enrollment_by_intent(conn: sqlite3.Connection, payment_intent: str) -> EnrollmentRecord | None:
    row = conn.execute(
        f"{_ENROLLMENT_SELECT} WHERE e.payment_intent = ?", (payment_intent,)
    ).fetchone()
    return _row_to_enrollment(row) if row else None


def list_enrollments(
    conn: sqlite3.Connection,
    customer_id: str | None = None,
    status: str | None = None,
) -> list[EnrollmentRecord]:
    """List enrollments, newest first."""
    clauses: list[str] = []
    params: list[Any] = []
    if customer_id:
        clauses.append("e.customer_id = ?")
        params.append(customer_id)
    if status:
        clauses.append("e.status = ?")
        params.append(status)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"{_ENROLLMENT_SELECT} {where} ORDER BY e.created_at DESC, e.rowid DESC", params
    ).fetchall()
    return [_row_to_enrollment(row) for row in rows]


def _row_to_enrollment(row: sqlite3.Row) -> EnrollmentRecord:
    return EnrollmentRecord(
        id=row["id"],
        customer_id=row["customer_id"],
        enrollment_type=row["enrollment_type"],
        status=row["status"],
        payment_status=row["payment_status"],
        payment_intent=row["payment_intent"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        customer_name=row["customer_name"] or "",
    )


# =============================================================================
# BOOKINGS (enrollment_sessions)
# =============================================================================

_BOOKING_SELECT = """
    SELECT b.*,
           e.customer_id AS customer_id,
           e.status AS enrollment_status,
           c.first_name || ' ' || c.surname AS customer_name,
           c.email AS customer_email,
           c.contact_no AS customer_contact,
           s.name AS session_name,
           s.code AS session_code
    FROM enrollment_sessions b
    JOIN enrollments e ON e.id = b.enrollment_id
    JOIN customers c ON c.id = e.customer_id
    JOIN sessions s ON s.id = b.session_id
"""


def insert_booking(
    conn: sqlite3.Connection,
    booking_id: str,
    enrollment_id: str,
    session_id: str,
    enrollment_type: str,
    fee_amount: float,
    trial_date: date | None = None,
    partial_dates: list[date] | None = None,
    booking_date: str | None = None,
) -> None:
    conn.execute(
        """
        INSERT INTO enrollment_sessions
            (id, enrollment_id, session_id, enrollment_type, trial_date,
             partial_dates, fee_amount, booking_date)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            booking_id,
            enrollment_id,
            session_id,
            enrollment_type,
            trial_date.isoformat() if trial_date else None,
            json.dumps([d.isoformat() for d in partial_dates]) if partial_dates else None,
            fee_amount,
            booking_date or utc_now_iso(),
        ),
    )
    logger.debug("bookings.inserted", booking_id=booking_id, session_id=session_id)


def get_booking(conn: sqlite3.Connection, booking_id: str) -> BookingRecord | None:
    row = conn.execute(f"{_BOOKING_SELECT} WHERE b.id = ?", (booking_id,)).fetchone()
    return _row_to_booking(row) if row else None


def list_bookings(conn: sqlite3.Connection, enrollment_id: str) -> list[BookingRecord]:
    rows = conn.execute(
        f"{_BOOKING_SELECT} WHERE b.enrollment_id = ? ORDER BY s.name", (enrollment_id,)
    ).fetchall()
    return [_row_to_booking(row) for row in rows]


def list_customer_bookings(conn: sqlite3.Connection, customer_id: str) -> list[BookingRecord]:
    rows = conn.execute(
        f"{_BOOKING_SELECT} WHERE e.customer_id = ? ORDER BY b.booking_date DESC",
        (customer_id,),
    ).fetchall()
    return [_row_to_booking(row) for row in rows]


def list_session_bookings(
    conn: sqlite3.Connection,
    session_id: str,
    statuses: tuple[str, ...] = ("active",),
) -> list[BookingRecord]:
    """Bookings of a session whose enrollment status is in ``statuses``."""
    placeholders = ", ".join("?" for _ in statuses)
    rows = conn.execute(
        f"""
        {_BOOKING_SELECT}
        WHERE b.session_id = ? AND e.status IN ({placeholders})
        ORDER BY c.surname, c.first_name
        """,
        (session_id, *statuses),
    ).fetchall()
    return [_row_to_booking(row) for row in rows]


def list_bookings_for_sessions(
    conn: sqlite3.Connection,
    session_ids: list[str] | None = None,
    statuses: tuple[str, ...] = ("active",),
) -> list[BookingRecord]:
    """Bookings of live enrollments, optionally restricted to some sessions."""
    placeholders = ", ".join("?" for _ in statuses)
    sql = f"{_BOOKING_SELECT} WHERE e.status IN ({placeholders})"
    params: list[Any] = list(statuses)
    if session_ids is not None:
        if not session_ids:
            return []
        sql += f" AND b.session_id IN ({', '.join('?' for _ in session_ids)})"
        params.extend(session_ids)
    rows = conn.execute(f"{sql} ORDER BY s.name, c.surname, c.first_name", params).fetchall()
    return [_row_to_booking(row) for row in rows]


def count_live_full_bookings(conn: sqlite3.Connection, session_id: str) -> int:
    """Full-term bookings of pending or active enrollments for a session."""
    row = conn.execute(
        """
        SELECT COUNT(*) FROM enrollment_sessions b
        JOIN enrollments e ON e.id = b.enrollment_id
        WHERE b.session_id = ? AND b.enrollment_type = 'full'
          AND e.status IN ('pending', 'active')
        """,
        (session_id,),
    ).fetchone()
    return row[0]


def customer_has_live_booking(conn: sqlite3.Connection, customer_id: str, session_id: str) -> bool:
    row = conn.execute(
        """
        SELECT 1 FROM enrollment_sessions b
        JOIN enrollments e ON e.id = b.enrollment_id
        WHERE e.customer_id = ? AND b.session_id = ?
          AND e.status IN ('pending', 'active')
        LIMIT 1
        """,
        (customer_id, session_id),
    ).fetchone()
    return row is not None


def _row_to_booking(row: sqlite3.Row) -> BookingRecord:
    partial = json.loads(row["partial_dates"]) if row["partial_dates"] else []
    return BookingRecord(
        id=row["id"],
        enrollment_id=row["enrollment_id"],
        session_id=row["session_id"],
        enrollment_type=row["enrollment_type"],
        trial_date=date.fromisoformat(row["trial_date"]) if row["trial_date"] else None,
        partial_dates=[date.fromisoformat(d) for d in partial],
        fee_amount=row["fee_amount"],
        booking_date=row["booking_date"],
        customer_id=row["customer_id"],
        customer_name=row["customer_name"] or "",
        customer_email=row["customer_email"],
        customer_contact=row["customer_contact"],
        enrollment_status=row["enrollment_status"],
        session_name=row["session_name"],
        session_code=row["session_code"],
    )


# =============================================================================
# PAYMENTS
# =============================================================================


def insert_payment(
    conn: sqlite3.Connection,
    payment_id: str,
    enrollment_id: str,
    amount: float,
    payment_method: str,
    payment_status: str,
    receipt_number: str,
    transaction_id: str | None = None,
    payment_date: str | None = None,
    notes: str | None = None,
) -> None:
    """Insert a payment row.

    Raises:
        sqlite3.IntegrityError: If the receipt number is already used
    """
    conn.execute(
        """
        INSERT INTO payments
            (id, enrollment_id, amount, payment_method, payment_status,
             transaction_id, receipt_number, payment_date, notes)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            payment_id,
            enrollment_id,
            amount,
            payment_method,
            payment_status,
            transaction_id,
            receipt_number,
            payment_date,
            notes,
        ),
    )
    logger.debug("payments.inserted", payment_id=payment_id, receipt=receipt_number)


def update_payment_status(
    conn: sqlite3.Connection,
    payment_id: str,
    status: str,
    transaction_id: str | None = None,
    payment_date: str | None = None,
) -> bool:
    cursor = conn.execute(
        """
        UPDATE payments
        SET payment_status = ?,
            transaction_id = COALESCE(?, transaction_id),
            payment_date = COALESCE(?, payment_date)
        WHERE id = ?
        """,
        (status, transaction_id, payment_date, payment_id),
    )
    return cursor.rowcount > 0


def list_payments(conn: sqlite3.Connection, enrollment_id: str) -> list[PaymentRecord]:
    rows = conn.execute(
        "SELECT * FROM payments WHERE enrollment_id = ? ORDER BY rowid", (enrollment_id,)
    ).fetchall()
    return [PaymentRecord(**dict(row)) for row in rows]


# =============================================================================
# ATTENDANCE
# =============================================================================


def upsert_attendance(
    conn: sqlite3.Connection,
    enrollment_session_id: str,
    class_date: date,
    status: str,
    marked_by: str | None,
) -> None:
    """Insert or replace the attendance mark for one booking and date."""
    conn.execute(
        """
        INSERT INTO attendance (enrollment_session_id, class_date, status, marked_by, marked_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT (enrollment_session_id, class_date)
        DO UPDATE SET status = excluded.status,
                      marked_by = excluded.marked_by,
                      marked_at = excluded.marked_at
        """,
        (enrollment_session_id, class_date.isoformat(), status, marked_by, utc_now_iso()),
    )


def list_attendance(
    conn: sqlite3.Connection,
    booking_ids: list[str] | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[AttendanceRecord]:
    """Attendance marks filtered by booking and an inclusive date range."""
    clauses: list[str] = []
    params: list[Any] = []
    if booking_ids is not None:
        if not booking_ids:
            return []
        clauses.append(f"enrollment_session_id IN ({', '.join('?' for _ in booking_ids)})")
        params.extend(booking_ids)
    if start:
        clauses.append("class_date >= ?")
        params.append(start.isoformat())
    if end:
        clauses.append("class_date <= ?")
        params.append(end.isoformat())
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM attendance {where} ORDER BY class_date", params
    ).fetchall()
    return [
        AttendanceRecord(
            enrollment_session_id=row["enrollment_session_id"],
            class_date=date.fromisoformat(row["class_date"]),
            status=row["status"],
            marked_by=row["marked_by"],
            marked_at=row["marked_at"],
        )
        for row in rows
    ]


def attendance_counts(conn: sqlite3.Connection, instructor_id: str) -> list[dict[str, Any]]:
    """Marked attendance per session and date for an instructor's sessions."""
    rows = conn.execute(
        """
        SELECT s.id AS session_id, s.name AS session_name, a.class_date AS class_date,
               SUM(a.status = 'present') AS present,
               SUM(a.status = 'absent') AS absent,
               SUM(a.status = 'late') AS late,
               COUNT(*) AS total
        FROM attendance a
        JOIN enrollment_sessions b ON b.id = a.enrollment_session_id
        JOIN sessions s ON s.id = b.session_id
        WHERE s.instructor_id = ?
        GROUP BY s.id, a.class_date
        ORDER BY a.class_date DESC, s.name
        """,
        (instructor_id,),
    ).fetchall()
    return [dict(row) for row in rows]
