"""Term calendars and booking date coverage.

Pure functions over TermRecord/BookingRecord; no database access.
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Iterable

from sharecrm.db.catalog_repository import TermRecord
from sharecrm.db.enrollments_repository import BookingRecord
from sharecrm.utils.validators import day_index


def class_dates(
    term: TermRecord,
    day_of_week: str,
    cancelled: Iterable[date] = (),
) -> list[date]:
    """Every date of the term falling on the session's weekday.

    Args:
        term: Term giving the inclusive date range
        day_of_week: Session weekday (Monday-Saturday)
        cancelled: Dates removed by accepted class cancellations

    Returns:
        Sorted list of class dates
    """
    weekday = day_index(day_of_week)
    skip = set(cancelled)
    offset = (weekday - term.start_date.weekday()) % 7
    current = term.start_date + timedelta(days=offset)
    dates: list[date] = []
    while current <= term.end_date:
        if current not in skip:
            dates.append(current)
        current += timedelta(days=7)
    return dates


def is_class_date(term: TermRecord, day_of_week: str, value: date) -> bool:
    return (
        term.start_date <= value <= term.end_date
        and value.weekday() == day_index(day_of_week)
    )


def current_term(terms: Iterable[TermRecord], today: date) -> TermRecord | None:
    """Return the term whose date range contains today."""
    for term in terms:
        if term.start_date <= today <= term.end_date:
            return term
    return None


def next_class_date(term: TermRecord, day_of_week: str, today: date) -> date | None:
    for value in class_dates(term, day_of_week):
        if value >= today:
            return value
    return None


def weeks_in_term(term: TermRecord) -> int:
    """Number of weeks used to pro-rate partial fees."""
    if term.number_of_weeks and term.number_of_weeks > 0:
        return term.number_of_weeks
    days = (term.end_date - term.start_date).days + 1
    return max(1, math.ceil(days / 7))


def booking_covers_date(
    booking: BookingRecord,
    value: date,
    term: TermRecord | None = None,
    day_of_week: str | None = None,
) -> bool:
    """Whether a booking entitles the customer to attend on ``value``.

    Full bookings cover every class date of the term, so term and weekday
    are needed to check them; trial and partial bookings only cover the
    dates stored on the booking.
    """
    if booking.enrollment_type == "trial":
        return booking.trial_date == value
    if booking.enrollment_type == "partial":
        return value in booking.partial_dates
    if term is None or day_of_week is None:
        return True
    return is_class_date(term, day_of_week, value)


def covered_dates(
    booking: BookingRecord,
    term: TermRecord,
    day_of_week: str,
    cancelled: Iterable[date] = (),
) -> list[date]:
    """All class dates a booking covers, minus cancelled classes."""
    skip = set(cancelled)
    if booking.enrollment_type == "trial":
        dates = [booking.trial_date] if booking.trial_date else []
    elif booking.enrollment_type == "partial":
        dates = sorted(booking.partial_dates)
    else:
        return class_dates(term, day_of_week, skip)
    return [d for d in dates if d not in skip]
