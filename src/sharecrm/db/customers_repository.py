"""Repository functions for customers and terminations tables.

All functions take an open connection so services can group several
writes into one transaction.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from typing import Any

import structlog

from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)

# Columns a profile form may write
PROFILE_FIELDS = (
    "first_name",
    "surname",
    "email",
    "contact_no",
    "street_number",
    "street_name",
    "suburb",
    "post_code",
    "country_of_birth",
    "date_of_birth",
    "work_mobile",
    "australian_citizen",
    "language_other_than_english",
    "english_proficiency",
    "indigenous_status",
    "reason_for_class",
    "how_did_you_hear",
    "occupation",
    "next_of_kin_name",
    "next_of_kin_relationship",
    "next_of_kin_mobile",
    "next_of_kin_phone",
)

# Columns only services may write
SYSTEM_FIELDS = (
    "user_id",
    "status",
    "block_note",
    "blocked_at",
    "paq_form",
    "paq_status",
    "paq_answers",
    "paq_document_path",
    "paq_filled_date",
)


@dataclass
class CustomerRecord:
    """Customer record from database."""

    id: str
    user_id: str | None
    first_name: str
    surname: str
    email: str
    status: str
    customer_credit: int
    paq_form: bool
    paq_status: str | None
    paq_answers: dict[str, bool]
    paq_document_path: str | None
    paq_filled_date: str | None
    block_note: str | None
    blocked_at: str | None
    created_at: str
    updated_at: str
    profile: dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.surname}".strip()

    @property
    def contact_no(self) -> str | None:
        return self.profile.get("contact_no")


@dataclass
class TerminationRecord:
    """Termination request from database."""

    id: str
    customer_id: str
    termination_date: str
    reason: str
    admin_notes: str | None
    status: str
    created_at: str
    updated_at: str
    customer_name: str = ""


def insert_customer(conn: sqlite3.Connection, customer_id: str, values: dict[str, Any]) -> None:
    """Insert a new customer.

    Args:
        conn: Open connection
        customer_id: New identifier
        values: Column values; keys outside PROFILE_FIELDS/SYSTEM_FIELDS are ignored

    Raises:
        sqlite3.IntegrityError: If the email or user_id is already taken
    """
    columns = {k: v for k, v in values.items() if k in PROFILE_FIELDS or k in SYSTEM_FIELDS}
    columns["id"] = customer_id
    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    conn.execute(
        f"INSERT INTO customers ({names}) VALUES ({placeholders})",
        tuple(columns.values()),
    )
    logger.debug("customers.inserted", customer_id=customer_id)


def update_customer(conn: sqlite3.Connection, customer_id: str, values: dict[str, Any]) -> bool:
    """Update customer columns and bump updated_at.

    Returns:
        True if a row was updated, False if not found
    """
    columns = {k: v for k, v in values.items() if k in PROFILE_FIELDS or k in SYSTEM_FIELDS}
    if not columns:
        return get_customer(conn, customer_id) is not None

    assignments = ", ".join(f"{name} = ?" for name in columns)
    cursor = conn.execute(
        f"UPDATE customers SET {assignments}, updated_at = ? WHERE id = ?",
        (*columns.values(), utc_now_iso(), customer_id),
    )
    return cursor.rowcount > 0


def get_customer(conn: sqlite3.Connection, customer_id: str) -> CustomerRecord | None:
    row = conn.execute("SELECT * FROM customers WHERE id = ?", (customer_id,)).fetchone()
    return _row_to_customer(row) if row else None


def get_customer_by_email(conn: sqlite3.Connection, email: str) -> CustomerRecord | None:
    row = conn.execute("SELECT * FROM customers WHERE email = ?", (email,)).fetchone()
    return _row_to_customer(row) if row else None


def get_customer_by_user_id(conn: sqlite3.Connection, user_id: str) -> CustomerRecord | None:
    row = conn.execute("SELECT * FROM customers WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_customer(row) if row else None


def list_customers(
    conn: sqlite3.Connection,
    search: str | None = None,
    status: str | None = None,
) -> list[CustomerRecord]:
    """List customers ordered by surname.

    Args:
        conn: Open connection
        search: Case-insensitive match on first name, surname or email
        status: Optional status filter
    """
    clauses: list[str] = []
    params: list[Any] = []
    if search:
        clauses.append("(first_name LIKE ? OR surname LIKE ? OR email LIKE ?)")
        pattern = f"%{search.strip()}%"
        params.extend([pattern, pattern, pattern])
    if status:
        clauses.append("status = ?")
        params.append(status)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM customers {where} ORDER BY surname, first_name", params
    ).fetchall()
    return [_row_to_customer(row) for row in rows]


def delete_customer(conn: sqlite3.Connection, customer_id: str) -> bool:
    """Delete a customer.

    Raises:
        sqlite3.IntegrityError: If enrollments still reference the customer
    """
    cursor = conn.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
    return cursor.rowcount > 0


def list_pending_paq(conn: sqlite3.Connection) -> list[CustomerRecord]:
    """Customers whose PAQ awaits review, oldest submission first."""
    rows = conn.execute(
        "SELECT * FROM customers WHERE paq_status = 'pending' ORDER BY paq_filled_date"
    ).fetchall()
    return [_row_to_customer(row) for row in rows]


def increment_credit(conn: sqlite3.Connection, customer_id: str, delta: int) -> bool:
    """Atomically add delta to the customer's credit balance.

    The update is a single statement guarded so the balance never goes
    negative; concurrent callers cannot lose each other's increments.

    Returns:
        True if applied, False if the customer is missing or the balance
        would drop below zero
    """
    cursor = conn.execute(
        """
        UPDATE customers
        SET customer_credit = customer_credit + ?, updated_at = ?
        WHERE id = ? AND customer_credit + ? >= 0
        """,
        (delta, utc_now_iso(), customer_id, delta),
    )
    applied = cursor.rowcount > 0
    if applied:
        logger.debug("customers.credit_incremented", customer_id=customer_id, delta=delta)
    return applied


# =============================================================================
# TERMINATIONS
# =============================================================================


def insert_termination(
    conn: sqlite3.Connection,
    termination_id: str,
    customer_id: str,
    termination_date: str,
    reason: str,
    admin_notes: str | None,
) -> None:
    conn.execute(
        """
        INSERT INTO terminations (id, customer_id, termination_date, reason, admin_notes)
        VALUES (?, ?, ?, ?, ?)
        """,
        (termination_id, customer_id, termination_date, reason, admin_notes),
    )
    logger.debug("terminations.inserted", termination_id=termination_id)


def get_termination(conn: sqlite3.Connection, termination_id: str) -> TerminationRecord | None:
    row = conn.execute(
        f"{_TERMINATION_SELECT} WHERE t.id = ?", (termination_id,)
    ).fetchone()
    return _row_to_termination(row) if row else None


def list_terminations(
    conn: sqlite3.Connection,
    status: str | None = None,
    customer_id: str | None = None,
) -> list[TerminationRecord]:
    """List termination requests, newest first."""
    clauses: list[str] = []
    params: list[Any] = []
    if status:
        clauses.append("t.status = ?")
        params.append(status)
    if customer_id:
        clauses.append("t.customer_id = ?")
        params.append(customer_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"{_TERMINATION_SELECT} {where} ORDER BY t.created_at DESC, t.rowid DESC", params
    ).fetchall()
    return [_row_to_termination(row) for row in rows]


def update_termination(
    conn: sqlite3.Connection,
    termination_id: str,
    status: str,
    admin_notes: str | None,
) -> bool:
    cursor = conn.execute(
        """
        UPDATE terminations SET status = ?, admin_notes = ?, updated_at = ?
        WHERE id = ?
        """,
        (status, admin_notes, utc_now_iso(), termination_id),
    )
    return cursor.rowcount > 0


_TERMINATION_SELECT = """
    SELECT t.*, c.first_name || ' ' || c.surname AS customer_name
    FROM terminations t
    JOIN customers c ON c.id = t.customer_id
"""


def _row_to_customer(row: sqlite3.Row) -> CustomerRecord:
    """Convert database row to CustomerRecord."""
    keys = row.keys()
    profile = {name: row[name] for name in PROFILE_FIELDS if name in keys}
    if profile.get("australian_citizen") is not None:
        profile["australian_citizen"] = bool(profile["australian_citizen"])
    return CustomerRecord(
        id=row["id"],
        user_id=row["user_id"],
        first_name=row["first_name"],
        surname=row["surname"],
        email=row["email"],
        status=row["status"],
        customer_credit=row["customer_credit"],
        paq_form=bool(row["paq_form"]),
        paq_status=row["paq_status"],
        paq_answers=json.loads(row["paq_answers"]) if row["paq_answers"] else {},
        paq_document_path=row["paq_document_path"],
        paq_filled_date=row["paq_filled_date"],
        block_note=row["block_note"],
        blocked_at=row["blocked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        profile=profile,
    )


def _row_to_termination(row: sqlite3.Row) -> TerminationRecord:
    return TerminationRecord(
        id=row["id"],
        customer_id=row["customer_id"],
        termination_date=row["termination_date"],
        reason=row["reason"],
        admin_notes=row["admin_notes"],
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        customer_name=row["customer_name"] or "",
    )
