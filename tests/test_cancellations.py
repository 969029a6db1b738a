"""Tests for booking and class cancellation requests."""

from datetime import date

import pytest

from sharecrm.core import cancellations, catalog, customers, enrollment
from sharecrm.core.enrollment import EnrollmentLine
from sharecrm.core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from sharecrm.core.storage import UploadedFile, get_storage

BEFORE_TERM = date(2029, 12, 1)
MID_TERM = date(2030, 3, 5)
CERTIFICATE = UploadedFile("certificate.pdf", "application/pdf", b"%PDF-1.4 medical")


def _book(customer_id, session_id, line=None):
    outcome = enrollment.create_direct_enrollment(
        customer_id, [line or EnrollmentLine(session_id)], "cash", today=BEFORE_TERM
    )
    return outcome.detail.bookings[0]


class TestRequestBookingCancellation:
    """Tests for request_booking_cancellation."""

    def test_one_pending_row_per_date(self, customer, session):
        booking = _book(customer.id, session.id)

        created = cancellations.request_booking_cancellation(
            customer.id, booking.id, [date(2030, 1, 21), date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
        )

        assert [c.class_date for c in created] == [date(2030, 1, 14), date(2030, 1, 21)]
        assert all(c.status == "pending" for c in created)
        assert created[0].customer_id == customer.id
        assert created[0].session_name == session.name

    def test_certificate_is_stored(self, customer, session):
        booking = _book(customer.id, session.id)

        created = cancellations.request_booking_cancellation(
            customer.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
        )

        path = created[0].medical_certificate_path
        assert get_storage().open("medical-certificates", path) == CERTIFICATE.data

    def test_certificate_required(self, customer, session):
        booking = _book(customer.id, session.id)

        with pytest.raises(ValidationError, match="certificate"):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Flu", None, today=BEFORE_TERM
            )

    def test_reason_required(self, customer, session):
        booking = _book(customer.id, session.id)

        with pytest.raises(ValidationError, match="reason"):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "  ", CERTIFICATE, today=BEFORE_TERM
            )

    def test_certificate_type_checked(self, customer, session):
        booking = _book(customer.id, session.id)
        text_file = UploadedFile("notes.txt", "text/plain", b"hello")

        with pytest.raises(ValidationError, match="Unsupported"):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Flu", text_file, today=BEFORE_TERM
            )

    def test_other_customers_booking_hidden(self, customer, session):
        booking = _book(customer.id, session.id)
        other = customers.create_customer({"first_name": "John", "surname": "Roe", "email": "john@example.com"})

        with pytest.raises(NotFoundError):
            cancellations.request_booking_cancellation(
                other.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
            )

    def test_date_must_be_covered(self, customer, session):
        booking = _book(
            customer.id, session.id, EnrollmentLine(session.id, "partial", partial_dates=[date(2030, 1, 14)])
        )

        with pytest.raises(ValidationError, match="not upcoming dates"):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 21)], "Flu", CERTIFICATE, today=BEFORE_TERM
            )

    def test_past_date_rejected(self, customer, session):
        booking = _book(customer.id, session.id)

        with pytest.raises(ValidationError):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=MID_TERM
            )

    def test_duplicate_date_conflicts(self, customer, session):
        booking = _book(customer.id, session.id)
        cancellations.request_booking_cancellation(
            customer.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
        )

        with pytest.raises(ConflictError):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Still flu", CERTIFICATE, today=BEFORE_TERM
            )

    def test_rejected_duplicate_leaves_no_certificate(self, customer, session):
        booking = _book(customer.id, session.id)
        cancellations.request_booking_cancellation(
            customer.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
        )

        with pytest.raises(ConflictError):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Still flu", CERTIFICATE, today=BEFORE_TERM
            )

        folder = get_storage().root_dir / "medical-certificates" / customer.id
        assert len(list(folder.iterdir())) == 1

    def test_cancelled_class_date_rejected(self, customer, session, instructor):
        booking = _book(customer.id, session.id)
        requested = cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 14)], "Hall")
        cancellations.review_class_cancellation(requested[0].id, "accepted")

        with pytest.raises(ValidationError, match="not upcoming dates"):
            cancellations.request_booking_cancellation(
                customer.id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
            )

    def test_pending_enrollment_rejected(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )

        with pytest.raises(ValidationError, match="active"):
            cancellations.request_booking_cancellation(
                approved_customer.id,
                outcome.detail.bookings[0].id,
                [date(2030, 1, 14)],
                "Flu",
                CERTIFICATE,
                today=BEFORE_TERM,
            )


class TestReviewBookingCancellation:
    """Tests for review_booking_cancellation and credit."""

    def _request(self, customer_id, session_id):
        booking = _book(customer_id, session_id)
        return cancellations.request_booking_cancellation(
            customer_id, booking.id, [date(2030, 1, 14)], "Flu", CERTIFICATE, today=BEFORE_TERM
        )[0]

    def test_accept_awards_one_credit(self, customer, session):
        pending = self._request(customer.id, session.id)

        reviewed = cancellations.review_booking_cancellation(pending.id, "accepted", "Get well")

        assert reviewed.status == "accepted"
        assert reviewed.credit_awarded is True
        assert reviewed.admin_notes == "Get well"
        assert reviewed.reviewed_at is not None
        assert customers.get_customer(customer.id).customer_credit == 1

    def test_second_review_conflicts_and_credits_once(self, customer, session):
        pending = self._request(customer.id, session.id)
        cancellations.review_booking_cancellation(pending.id, "accepted")

        with pytest.raises(ConflictError, match="already been reviewed"):
            cancellations.review_booking_cancellation(pending.id, "accepted")

        assert customers.get_customer(customer.id).customer_credit == 1

    def test_subsidised_session_gives_no_credit(self, customer, make_session):
        subsidised = make_session(is_subsidised=True)
        pending = self._request(customer.id, subsidised.id)

        reviewed = cancellations.review_booking_cancellation(pending.id, "accepted")

        assert reviewed.credit_awarded is False
        assert customers.get_customer(customer.id).customer_credit == 0

    def test_rejection_gives_no_credit(self, customer, session):
        pending = self._request(customer.id, session.id)

        reviewed = cancellations.review_booking_cancellation(pending.id, "rejected")

        assert reviewed.status == "rejected"
        assert customers.get_customer(customer.id).customer_credit == 0

    def test_invalid_status(self, customer, session):
        pending = self._request(customer.id, session.id)

        with pytest.raises(ValidationError):
            cancellations.review_booking_cancellation(pending.id, "pending")

    def test_unknown_request(self):
        with pytest.raises(NotFoundError):
            cancellations.review_booking_cancellation("missing", "accepted")

    def test_pending_list(self, customer, session):
        pending = self._request(customer.id, session.id)

        assert [c.id for c in cancellations.pending_booking_cancellations()] == [pending.id]
        cancellations.review_booking_cancellation(pending.id, "rejected")
        assert cancellations.pending_booking_cancellations() == []


class TestClassCancellation:
    """Tests for instructor class cancellations."""

    def test_request_and_accept_removes_date(self, session, instructor):
        created = cancellations.request_class_cancellation(
            instructor.id, session.id, [date(2030, 1, 14)], "Venue closed"
        )
        assert created[0].status == "pending"
        assert created[0].instructor_name == instructor.name
        # Pending requests do not change the calendar yet
        assert date(2030, 1, 14) in catalog.session_class_dates(session.id)

        cancellations.review_class_cancellation(created[0].id, "accepted")

        dates = catalog.session_class_dates(session.id)
        assert date(2030, 1, 14) not in dates
        assert len(dates) == 11

    def test_accepted_cancellation_not_bookable(self, session, instructor):
        created = cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 14)], "Closed")
        cancellations.review_class_cancellation(created[0].id, "accepted")

        with pytest.raises(ValidationError):
            enrollment.quote(
                [EnrollmentLine(session.id, "trial", trial_date=date(2030, 1, 14))], today=BEFORE_TERM
            )

    def test_other_instructor_denied(self, session):
        other, _ = catalog.create_instructor(
            {
                "name": "Other Coach",
                "email": "other@example.com",
                "contact_no": "0400 999 999",
                "specialty": "Yoga",
                "address": "3 Low St",
            }
        )

        with pytest.raises(PermissionDeniedError):
            cancellations.request_class_cancellation(other.id, session.id, [date(2030, 1, 14)], "Sick")

    def test_non_class_date_rejected(self, session, instructor):
        with pytest.raises(ValidationError, match="not class dates"):
            cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 15)], "Sick")

    def test_duplicate_request_conflicts(self, session, instructor):
        cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 14)], "Sick")

        with pytest.raises(ConflictError):
            cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 14)], "Sick")

    def test_review_twice_conflicts(self, session, instructor):
        created = cancellations.request_class_cancellation(instructor.id, session.id, [date(2030, 1, 14)], "Sick")
        cancellations.review_class_cancellation(created[0].id, "rejected")

        with pytest.raises(ConflictError):
            cancellations.review_class_cancellation(created[0].id, "accepted")

    def test_list_filters(self, session, instructor):
        created = cancellations.request_class_cancellation(
            instructor.id, session.id, [date(2030, 1, 14), date(2030, 1, 21)], "Sick"
        )
        cancellations.review_class_cancellation(created[0].id, "accepted")

        assert len(cancellations.list_class_cancellations(session_id=session.id)) == 2
        assert [c.id for c in cancellations.list_class_cancellations(status="pending")] == [created[1].id]
