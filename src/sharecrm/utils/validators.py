"""Data validation helpers.

Functions:
- validate_email(email) -> bool: Email format check (empty is not valid)
- normalize_email(email) -> str: Trimmed, lowercased address
- parse_date(value, field) -> date: ISO date parsing with a field-aware error
- new_id() -> str: Identifier for new rows
- day_index(day_of_week) -> int: Monday=0 ... Saturday=5
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone

from sharecrm.core.errors import ValidationError

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")

DAYS_OF_WEEK = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def validate_email(email: str | None) -> bool:
    """Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if the address is well formed, False otherwise (including empty)
    """
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_email(email: str) -> str:
    """Return the canonical form used for uniqueness checks."""
    return email.strip().lower()


def require_email(email: str | None, field: str = "email") -> str:
    """Validate and normalize an email, raising ValidationError when invalid."""
    if not validate_email(email):
        raise ValidationError(f"Invalid {field} format")
    return normalize_email(email or "")


def parse_date(value: str | date, field: str = "date") -> date:
    """Parse an ISO date (YYYY-MM-DD); full ISO timestamps are truncated.

    Raises:
        ValidationError: If the value is not a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = (value or "").strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field}: '{value}'") from None


def day_index(day_of_week: str) -> int:
    """Return the weekday index for a Monday-Saturday day name.

    Raises:
        ValidationError: If the day is not a class day
    """
    try:
        return DAYS_OF_WEEK.index(day_of_week)
    except ValueError:
        raise ValidationError(
            f"Invalid day_of_week '{day_of_week}'. Expected one of: {', '.join(DAYS_OF_WEEK)}"
        ) from None


def new_id() -> str:
    """Generate a row identifier."""
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO format, seconds precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()
