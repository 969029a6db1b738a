"""Catalog administration: venues, terms, exercise types, instructors, sessions.

Each create/update validates the same rules the admin forms enforce and
raises ValidationError with a message naming the offending field.
"""

from __future__ import annotations

import sqlite3
from datetime import date
from typing import Any

import structlog

from sharecrm.core import schedule
from sharecrm.core.auth import generate_password, hash_password
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError
from sharecrm.db import catalog_repository as repo
from sharecrm.db.cancellations_repository import cancelled_class_dates
from sharecrm.db.database import get_db
from sharecrm.db.staff_repository import get_user_by_email, insert_user
from sharecrm.utils.validators import (
    DAYS_OF_WEEK,
    day_index,
    new_id,
    parse_date,
    require_email,
)

logger = structlog.get_logger(__name__)

MIN_FISCAL_YEAR = 2020
MAX_FISCAL_YEAR = 2050
MAX_WEEKS = 20


def _required(values: dict[str, Any], *names: str) -> None:
    missing = [name for name in names if not str(values.get(name) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _delete_or_conflict(entity: str, entity_id: Any, delete) -> None:
    try:
        with get_db() as conn:
            if not delete(conn, entity_id):
                raise NotFoundError(entity, entity_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"{entity} '{entity_id}' is still referenced and cannot be deleted") from None
    logger.info("catalog.deleted", entity=entity.lower(), id=entity_id)


# =============================================================================
# VENUES
# =============================================================================


def create_venue(values: dict[str, Any]) -> repo.VenueRecord:
    _validate_venue(values)
    venue_id = new_id()
    with get_db() as conn:
        repo.insert_venue(conn, venue_id, {"status": "active", **values})
        venue = repo.get_venue(conn, venue_id)
    logger.info("venues.created", venue_id=venue_id, name=venue.name)
    return venue


def update_venue(venue_id: str, values: dict[str, Any]) -> repo.VenueRecord:
    with get_db() as conn:
        current = repo.get_venue(conn, venue_id)
        if current is None:
            raise NotFoundError("Venue", venue_id)
        merged = {**current.__dict__, **values}
        _validate_venue(merged)
        repo.update_venue(conn, venue_id, values)
        return repo.get_venue(conn, venue_id)


def get_venue(venue_id: str) -> repo.VenueRecord:
    with get_db() as conn:
        venue = repo.get_venue(conn, venue_id)
    if venue is None:
        raise NotFoundError("Venue", venue_id)
    return venue


def list_venues(status: str | None = None) -> list[repo.VenueRecord]:
    with get_db() as conn:
        return repo.list_venues(conn, status)


def delete_venue(venue_id: str) -> None:
    _delete_or_conflict("Venue", venue_id, repo.delete_venue)


def _validate_venue(values: dict[str, Any]) -> None:
    _required(values, "name", "street_address", "city")
    if values.get("status", "active") not in ("active", "inactive"):
        raise ValidationError("Venue status must be 'active' or 'inactive'")


# =============================================================================
# TERMS
# =============================================================================


def create_term(values: dict[str, Any]) -> repo.TermRecord:
    cleaned = _validate_term(values)
    with get_db() as conn:
        term_id = repo.insert_term(conn, cleaned)
        term = repo.get_term(conn, term_id)
    logger.info("terms.created", term_id=term_id, label=term.label)
    return term


def update_term(term_id: int, values: dict[str, Any]) -> repo.TermRecord:
    with get_db() as conn:
        current = repo.get_term(conn, term_id)
        if current is None:
            raise NotFoundError("Term", term_id)
        cleaned = _validate_term({**current.__dict__, **values})
        repo.update_term(conn, term_id, cleaned)
        return repo.get_term(conn, term_id)


def get_term(term_id: int) -> repo.TermRecord:
    with get_db() as conn:
        term = repo.get_term(conn, term_id)
    if term is None:
        raise NotFoundError("Term", term_id)
    return term


def list_terms() -> list[repo.TermRecord]:
    with get_db() as conn:
        return repo.list_terms(conn)


def delete_term(term_id: int) -> None:
    _delete_or_conflict("Term", term_id, repo.delete_term)


def get_current_term(today: date | None = None) -> repo.TermRecord | None:
    return schedule.current_term(list_terms(), today or date.today())


def _validate_term(values: dict[str, Any]) -> dict[str, Any]:
    """Validate term fields and return them with parsed dates."""
    _required(values, "fiscal_year", "term_number", "day_of_week", "start_date", "end_date")
    try:
        fiscal_year = int(values["fiscal_year"])
        term_number = int(values["term_number"])
        weeks = int(values.get("number_of_weeks") or 0)
    except (TypeError, ValueError):
        raise ValidationError("fiscal_year, term_number and number_of_weeks must be integers") from None

    if not MIN_FISCAL_YEAR <= fiscal_year <= MAX_FISCAL_YEAR:
        raise ValidationError(f"fiscal_year must be between {MIN_FISCAL_YEAR} and {MAX_FISCAL_YEAR}")
    if not 1 <= term_number <= 4:
        raise ValidationError("term_number must be between 1 and 4")
    day_index(values["day_of_week"])

    start = parse_date(values["start_date"], "start_date")
    end = parse_date(values["end_date"], "end_date")
    if start > end:
        raise ValidationError("start_date must be on or before end_date")

    if weeks == 0:
        weeks = max(1, -(-((end - start).days + 1) // 7))
    if not 1 <= weeks <= MAX_WEEKS:
        raise ValidationError(f"number_of_weeks must be between 1 and {MAX_WEEKS}")

    return {
        "fiscal_year": fiscal_year,
        "term_number": term_number,
        "day_of_week": values["day_of_week"],
        "start_date": start,
        "end_date": end,
        "number_of_weeks": weeks,
    }


# =============================================================================
# EXERCISE TYPES
# =============================================================================


def create_exercise_type(values: dict[str, Any]) -> repo.ExerciseTypeRecord:
    _required(values, "name")
    type_id = new_id()
    try:
        with get_db() as conn:
            repo.insert_exercise_type(conn, type_id, values)
            created = repo.get_exercise_type(conn, type_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"Exercise type '{values['name']}' already exists") from None
    logger.info("exercise_types.created", type_id=type_id, name=created.name)
    return created


def update_exercise_type(type_id: str, values: dict[str, Any]) -> repo.ExerciseTypeRecord:
    if "name" in values:
        _required(values, "name")
    with get_db() as conn:
        if not repo.update_exercise_type(conn, type_id, values):
            raise NotFoundError("Exercise type", type_id)
        return repo.get_exercise_type(conn, type_id)


def list_exercise_types() -> list[repo.ExerciseTypeRecord]:
    with get_db() as conn:
        return repo.list_exercise_types(conn)


def delete_exercise_type(type_id: str) -> None:
    _delete_or_conflict("Exercise type", type_id, repo.delete_exercise_type)


# =============================================================================
# INSTRUCTORS
# =============================================================================


def create_instructor(values: dict[str, Any], password: str | None = None) -> tuple[repo.InstructorRecord, str | None]:
    """Create an instructor and the login account they sign in with.

    Args:
        values: Instructor fields
        password: Initial password; generated when omitted

    Returns:
        Tuple of (instructor, generated password or None if one was supplied)

    Raises:
        ValidationError: If required fields are missing or the email is invalid
        ConflictError: If a user with the email already exists
    """
    _required(values, "name", "email", "contact_no", "specialty", "address")
    email = require_email(values["email"])
    generated = None
    if not password:
        generated = password = generate_password()

    instructor_id = new_id()
    user_id = new_id()
    with get_db() as conn:
        if get_user_by_email(conn, email) is not None:
            raise ConflictError(f"A user with email '{email}' already exists")
        insert_user(
            conn,
            user_id,
            {
                "email": email,
                "password_hash": hash_password(password),
                "full_name": values["name"].strip(),
                "role": "instructor",
                "phone": values.get("contact_no"),
            },
        )
        repo.insert_instructor(conn, instructor_id, {**values, "email": email, "user_id": user_id})
        instructor = repo.get_instructor(conn, instructor_id)

    logger.info("instructors.created", instructor_id=instructor_id, user_id=user_id)
    return instructor, generated


def update_instructor(instructor_id: str, values: dict[str, Any]) -> repo.InstructorRecord:
    if "email" in values:
        values = {**values, "email": require_email(values["email"])}
    with get_db() as conn:
        if not repo.update_instructor(conn, instructor_id, values):
            raise NotFoundError("Instructor", instructor_id)
        return repo.get_instructor(conn, instructor_id)


def get_instructor(instructor_id: str) -> repo.InstructorRecord:
    with get_db() as conn:
        instructor = repo.get_instructor(conn, instructor_id)
    if instructor is None:
        raise NotFoundError("Instructor", instructor_id)
    return instructor


def get_instructor_for_user(user_id: str) -> repo.InstructorRecord:
    with get_db() as conn:
        instructor = repo.get_instructor_by_user_id(conn, user_id)
    if instructor is None:
        raise NotFoundError("Instructor profile for user", user_id)
    return instructor


def list_instructors() -> list[repo.InstructorRecord]:
    with get_db() as conn:
        return repo.list_instructors(conn)


def delete_instructor(instructor_id: str) -> None:
    _delete_or_conflict("Instructor", instructor_id, repo.delete_instructor)


# =============================================================================
# SESSIONS
# =============================================================================


def create_session(values: dict[str, Any]) -> repo.SessionRecord:
    session_id = new_id()
    with get_db() as conn:
        cleaned = _validate_session(conn, values)
        repo.insert_session(conn, session_id, cleaned)
        session = repo.get_session(conn, session_id)
    logger.info("sessions.created", session_id=session_id, code=session.code)
    return session


def update_session(session_id: str, values: dict[str, Any]) -> repo.SessionRecord:
    with get_db() as conn:
        current = repo.get_session(conn, session_id)
        if current is None:
            raise NotFoundError("Session", session_id)
        merged = {name: getattr(current, name) for name in repo.SESSION_FIELDS}
        merged.update(values)
        repo.update_session(conn, session_id, _validate_session(conn, merged))
        return repo.get_session(conn, session_id)


def get_session(session_id: str) -> repo.SessionRecord:
    with get_db() as conn:
        session = repo.get_session(conn, session_id)
    if session is None:
        raise NotFoundError("Session", session_id)
    return session


def list_sessions(
    term_id: int | None = None,
    exercise_type_id: str | None = None,
    day_of_week: str | None = None,
    instructor_id: str | None = None,
) -> list[repo.SessionRecord]:
    with get_db() as conn:
        return repo.list_sessions(conn, term_id, exercise_type_id, day_of_week, instructor_id)


def list_current_sessions(
    exercise_type_id: str | None = None,
    today: date | None = None,
) -> tuple[repo.TermRecord | None, list[repo.SessionRecord]]:
    """Sessions of the term running today, for the public timetable."""
    term = get_current_term(today)
    if term is None:
        return None, []
    return term, list_sessions(term_id=term.id, exercise_type_id=exercise_type_id)


def delete_session(session_id: str) -> None:
    _delete_or_conflict("Session", session_id, repo.delete_session)


def session_class_dates(session_id: str) -> list[date]:
    """Class dates of a session, without accepted class cancellations."""
    with get_db() as conn:
        session = repo.get_session(conn, session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        term = repo.get_term(conn, session.term_id)
        cancelled = cancelled_class_dates(conn, session_id)
    return schedule.class_dates(term, session.day_of_week, cancelled)


def _validate_session(conn: sqlite3.Connection, values: dict[str, Any]) -> dict[str, Any]:
    _required(values, "name", "code", "venue_id", "instructor_id", "term_id", "fee_criteria", "start_time")
    if values.get("day_of_week") not in DAYS_OF_WEEK:
        raise ValidationError(f"day_of_week must be one of: {', '.join(DAYS_OF_WEEK)}")

    try:
        fee = float(values.get("fee_amount") or 0)
    except (TypeError, ValueError):
        raise ValidationError("fee_amount must be a number") from None
    if fee < 0:
        raise ValidationError("fee_amount must not be negative")

    capacity = values.get("class_capacity")
    if capacity in ("", None):
        capacity = None
    else:
        try:
            capacity = int(capacity)
        except (TypeError, ValueError):
            raise ValidationError("class_capacity must be a whole number") from None
        if capacity < 1:
            raise ValidationError("class_capacity must be at least 1")

    if repo.get_venue(conn, values["venue_id"]) is None:
        raise NotFoundError("Venue", values["venue_id"])
    if repo.get_instructor(conn, values["instructor_id"]) is None:
        raise NotFoundError("Instructor", values["instructor_id"])
    if repo.get_term(conn, int(values["term_id"])) is None:
        raise NotFoundError("Term", values["term_id"])
    exercise_type_id = values.get("exercise_type_id") or None
    if exercise_type_id and repo.get_exercise_type(conn, exercise_type_id) is None:
        raise NotFoundError("Exercise type", exercise_type_id)

    return {
        **{k: v for k, v in values.items() if k in repo.SESSION_FIELDS},
        "term_id": int(values["term_id"]),
        "exercise_type_id": exercise_type_id,
        "fee_amount": fee,
        "class_capacity": capacity,
        "is_subsidised": 1 if values.get("is_subsidised") else 0,
    }
