"""Repository functions for the class catalog.

Covers venues, terms, exercise types, instructors and sessions (the
recurring weekly classes customers enroll into).
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Any

import structlog

from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)

VENUE_FIELDS = ("name", "street_address", "city", "status")
TERM_FIELDS = (
    "fiscal_year",
    "term_number",
    "day_of_week",
    "start_date",
    "end_date",
    "number_of_weeks",
)
EXERCISE_TYPE_FIELDS = ("name", "description")
INSTRUCTOR_FIELDS = (
    "user_id",
    "name",
    "email",
    "contact_no",
    "specialty",
    "address",
    "description",
    "image_link",
)
SESSION_FIELDS = (
    "name",
    "code",
    "venue_id",
    "instructor_id",
    "exercise_type_id",
    "term_id",
    "fee_criteria",
    "fee_amount",
    "day_of_week",
    "start_time",
    "end_time",
    "zip_code",
    "is_subsidised",
    "class_capacity",
)


@dataclass
class VenueRecord:
    id: str
    name: str
    street_address: str
    city: str
    status: str


@dataclass
class TermRecord:
    """Teaching term; sessions recur weekly between start and end date."""

    id: int
    fiscal_year: int
    term_number: int
    day_of_week: str
    start_date: date
    end_date: date
    number_of_weeks: int

    @property
    def label(self) -> str:
        return f"Term {self.term_number} {self.fiscal_year}"


@dataclass
class ExerciseTypeRecord:
    id: str
    name: str
    description: str | None


@dataclass
class InstructorRecord:
    id: str
    user_id: str | None
    name: str
    email: str
    contact_no: str
    specialty: str
    address: str
    description: str | None
    image_link: str | None


@dataclass
class SessionRecord:
    """Recurring class with denormalized venue/instructor/type names."""

    id: str
    name: str
    code: str
    venue_id: str
    instructor_id: str
    exercise_type_id: str | None
    term_id: int
    fee_criteria: str
    fee_amount: float
    day_of_week: str
    start_time: str
    end_time: str | None
    zip_code: str | None
    is_subsidised: bool
    class_capacity: int | None
    venue_name: str = ""
    instructor_name: str = ""
    exercise_type_name: str = ""


# =============================================================================
# GENERIC HELPERS
# =============================================================================


def _insert(conn: sqlite3.Connection, table: str, allowed: tuple[str, ...], values: dict[str, Any]) -> int:
    columns = {k: v for k, v in values.items() if k in allowed or k == "id"}
    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    cursor = conn.execute(
        f"INSERT INTO {table} ({names}) VALUES ({placeholders})", tuple(columns.values())
    )
    logger.debug("catalog.inserted", table=table)
    return cursor.lastrowid


def _update(
    conn: sqlite3.Connection,
    table: str,
    allowed: tuple[str, ...],
    row_id: Any,
    values: dict[str, Any],
    touch: bool = False,
) -> bool:
    columns = {k: v for k, v in values.items() if k in allowed}
    if not columns:
        return conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone() is not None
    assignments = ", ".join(f"{name} = ?" for name in columns)
    params: list[Any] = list(columns.values())
    if touch:
        assignments += ", updated_at = ?"
        params.append(utc_now_iso())
    params.append(row_id)
    cursor = conn.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", params)
    return cursor.rowcount > 0


def _delete(conn: sqlite3.Connection, table: str, row_id: Any) -> bool:
    """Delete a row.

    Raises:
        sqlite3.IntegrityError: If other rows still reference it
    """
    cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
    deleted = cursor.rowcount > 0
    if deleted:
        logger.debug("catalog.deleted", table=table, id=row_id)
    return deleted


# =============================================================================
# VENUES
# =============================================================================


def insert_venue(conn: sqlite3.Connection, venue_id: str, values: dict[str, Any]) -> None:
    _insert(conn, "venues", VENUE_FIELDS, {**values, "id": venue_id})


def update_venue(conn: sqlite3.Connection, venue_id: str, values: dict[str, Any]) -> bool:
    return _update(conn, "venues", VENUE_FIELDS, venue_id, values)


def delete_venue(conn: sqlite3.Connection, venue_id: str) -> bool:
    return _delete(conn, "venues", venue_id)


def get_venue(conn: sqlite3.Connection, venue_id: str) -> VenueRecord | None:
    row = conn.execute("SELECT * FROM venues WHERE id = ?", (venue_id,)).fetchone()
    return VenueRecord(**dict(row)) if row else None


def list_venues(conn: sqlite3.Connection, status: str | None = None) -> list[VenueRecord]:
    if status:
        rows = conn.execute(
            "SELECT * FROM venues WHERE status = ? ORDER BY name", (status,)
        ).fetchall()
    else:
        rows = conn.execute("SELECT * FROM venues ORDER BY name").fetchall()
    return [VenueRecord(**dict(row)) for row in rows]


# =============================================================================
# TERMS
# =============================================================================


def insert_term(conn: sqlite3.Connection, values: dict[str, Any]) -> int:
    """Insert a term and return its integer id."""
    return _insert(conn, "terms", TERM_FIELDS, _term_values(values))


def update_term(conn: sqlite3.Connection, term_id: int, values: dict[str, Any]) -> bool:
    return _update(conn, "terms", TERM_FIELDS, term_id, _term_values(values))


def delete_term(conn: sqlite3.Connection, term_id: int) -> bool:
    return _delete(conn, "terms", term_id)


def get_term(conn: sqlite3.Connection, term_id: int) -> TermRecord | None:
    row = conn.execute("SELECT * FROM terms WHERE id = ?", (term_id,)).fetchone()
    return _row_to_term(row) if row else None


def list_terms(conn: sqlite3.Connection) -> list[TermRecord]:
    """List terms, latest fiscal year first then by term number."""
    rows = conn.execute(
        "SELECT * FROM terms ORDER BY fiscal_year DESC, term_number"
    ).fetchall()
    return [_row_to_term(row) for row in rows]


def _term_values(values: dict[str, Any]) -> dict[str, Any]:
    result = dict(values)
    for key in ("start_date", "end_date"):
        if isinstance(result.get(key), date):
            result[key] = result[key].isoformat()
    return result


def _row_to_term(row: sqlite3.Row) -> TermRecord:
    return TermRecord(
        id=row["id"],
        fiscal_year=row["fiscal_year"],
        term_number=row["term_number"],
        day_of_week=row["day_of_week"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=date.fromisoformat(row["end_date"]),
        number_of_weeks=row["number_of_weeks"],
    )


# =============================================================================
# EXERCISE TYPES
# =============================================================================


def insert_exercise_type(conn: sqlite3.Connection, type_id: str, values: dict[str, Any]) -> None:
    _insert(conn, "exercise_types", EXERCISE_TYPE_FIELDS, {**values, "id": type_id})


def update_exercise_type(conn: sqlite3.Connection, type_id: str, values: dict[str, Any]) -> bool:
    return _update(conn, "exercise_types", EXERCISE_TYPE_FIELDS, type_id, values)


def delete_exercise_type(conn: sqlite3.Connection, type_id: str) -> bool:
    return _delete(conn, "exercise_types", type_id)


def get_exercise_type(conn: sqlite3.Connection, type_id: str) -> ExerciseTypeRecord | None:
    row = conn.execute("SELECT * FROM exercise_types WHERE id = ?", (type_id,)).fetchone()
    return ExerciseTypeRecord(**dict(row)) if row else None


def list_exercise_types(conn: sqlite3.Connection) -> list[ExerciseTypeRecord]:
    rows = conn.execute("SELECT * FROM exercise_types ORDER BY name").fetchall()
    return [ExerciseTypeRecord(**dict(row)) for row in rows]


# =============================================================================
# INSTRUCTORS
# =============================================================================


def insert_instructor(conn: sqlite3.Connection, instructor_id: str, values: dict[str, Any]) -> None:
    _insert(conn, "instructors", INSTRUCTOR_FIELDS, {**values, "id": instructor_id})


def update_instructor(conn: sqlite3.Connection, instructor_id: str, values: dict[str, Any]) -> bool:
    return _update(conn, "instructors", INSTRUCTOR_FIELDS, instructor_id, values, touch=True)


def delete_instructor(conn: sqlite3.Connection, instructor_id: str) -> bool:
    return _delete(conn, "instructors", instructor_id)


def get_instructor(conn: sqlite3.Connection, instructor_id: str) -> InstructorRecord | None:
    row = conn.execute("SELECT * FROM instructors WHERE id = ?", (instructor_id,)).fetchone()
    return _row_to_instructor(row) if row else None


def get_instructor_by_user_id(conn: sqlite3.Connection, user_id: str) -> InstructorRecord | None:
    row = conn.execute("SELECT * FROM instructors WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_instructor(row) if row else None


def list_instructors(conn: sqlite3.Connection) -> list[InstructorRecord]:
    rows = conn.execute("SELECT * FROM instructors ORDER BY name").fetchall()
    return [_row_to_instructor(row) for row in rows]


def _row_to_instructor(row: sqlite3.Row) -> InstructorRecord:
    return InstructorRecord(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        email=row["email"],
        contact_no=row["contact_no"],
        specialty=row["specialty"],
        address=row["address"],
        description=row["description"],
        image_link=row["image_link"],
    )


# =============================================================================
# SESSIONS
# =============================================================================

_SESSION_SELECT = """
    SELECT s.*,
           v.name AS venue_name,
           i.name AS instructor_name,
           COALESCE(e.name, '') AS exercise_type_name
    FROM sessions s
    JOIN venues v ON v.id = s.venue_id
    JOIN instructors i ON i.id = s.instructor_id
    LEFT JOIN exercise_types e ON e.id = s.exercise_type_id
"""

_DAY_ORDER = """
    CASE s.day_of_week
        WHEN 'Monday' THEN 0 WHEN 'Tuesday' THEN 1 WHEN 'Wednesday' THEN 2
        WHEN 'Thursday' THEN 3 WHEN 'Friday' THEN 4 ELSE 5
    END
"""


def insert_session(conn: sqlite3.Connection, session_id: str, values: dict[str, Any]) -> None:
    _insert(conn, "sessions", SESSION_FIELDS, {**values, "id": session_id})


def update_session(conn: sqlite3.Connection, session_id: str, values: dict[str, Any]) -> bool:
    return _update(conn, "sessions", SESSION_FIELDS, session_id, values)


def delete_session(conn: sqlite3.Connection, session_id: str) -> bool:
    return _delete(conn, "sessions", session_id)


def get_session(conn: sqlite3.Connection, session_id: str) -> SessionRecord | None:
    row = conn.execute(f"{_SESSION_SELECT} WHERE s.id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def list_sessions(
    conn: sqlite3.Connection,
    term_id: int | None = None,
    exercise_type_id: str | None = None,
    day_of_week: str | None = None,
    instructor_id: str | None = None,
) -> list[SessionRecord]:
    """List sessions ordered by weekday then start time.

    Args:
        conn: Open connection
        term_id: Only sessions of this term
        exercise_type_id: Only sessions of this exercise type
        day_of_week: Only sessions on this weekday
        instructor_id: Only sessions taught by this instructor
    """
    clauses: list[str] = []
    params: list[Any] = []
    for column, value in (
        ("s.term_id", term_id),
        ("s.exercise_type_id", exercise_type_id),
        ("s.day_of_week", day_of_week),
        ("s.instructor_id", instructor_id),
    ):
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"{_SESSION_SELECT} {where} ORDER BY {_DAY_ORDER}, s.start_time, s.name", params
    ).fetchall()
    return [_row_to_session(row) for row in rows]


def _row_to_session(row: sqlite3.Row) -> SessionRecord:
    return SessionRecord(
        id=row["id"],
        name=row["name"],
        code=row["code"],
        venue_id=row["venue_id"],
        instructor_id=row["instructor_id"],
        exercise_type_id=row["exercise_type_id"],
        term_id=row["term_id"],
        fee_criteria=row["fee_criteria"],
        fee_amount=row["fee_amount"],
        day_of_week=row["day_of_week"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        zip_code=row["zip_code"],
        is_subsidised=bool(row["is_subsidised"]),
        class_capacity=row["class_capacity"],
        venue_name=row["venue_name"],
        instructor_name=row["instructor_name"],
        exercise_type_name=row["exercise_type_name"],
    )
