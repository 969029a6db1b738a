"""Tests for fee quotes and enrollment creation."""

from datetime import date
from decimal import Decimal

import pytest

from sharecrm.core import customers, enrollment
from sharecrm.core.enrollment import EnrollmentLine
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError

BEFORE_TERM = date(2029, 12, 1)
MID_TERM = date(2030, 3, 5)


def _other_customer(email="john@example.com"):
    return customers.create_customer({"first_name": "John", "surname": "Roe", "email": email})


class TestQuote:
    """Tests for quote pricing and validation."""

    def test_no_lines_rejected(self):
        with pytest.raises(ValidationError, match="at least one"):
            enrollment.quote([], today=BEFORE_TERM)

    def test_full_booking_is_term_fee(self, session):
        result = enrollment.quote([EnrollmentLine(session.id)], today=BEFORE_TERM)

        assert result.total == Decimal("100.00")
        assert len(result.lines[0].dates) == 12

    def test_full_booking_mid_term_covers_remaining_dates(self, session):
        result = enrollment.quote([EnrollmentLine(session.id)], today=MID_TERM)

        assert result.lines[0].dates == [date(2030, 3, 11), date(2030, 3, 18), date(2030, 3, 25)]
        assert result.total == Decimal("100.00")

    def test_partial_fee_pro_rated(self, session):
        one = enrollment.quote(
            [EnrollmentLine(session.id, "partial", partial_dates=[date(2030, 1, 14)])], today=BEFORE_TERM
        )
        two = enrollment.quote(
            [EnrollmentLine(session.id, "partial", partial_dates=[date(2030, 1, 14), date(2030, 1, 21)])],
            today=BEFORE_TERM,
        )

        assert one.total == Decimal("8.33")
        assert two.total == Decimal("16.67")

    def test_trial_is_free(self, session):
        result = enrollment.quote(
            [EnrollmentLine(session.id, "trial", trial_date=date(2030, 1, 14))], today=BEFORE_TERM
        )

        assert result.total == Decimal("0.00")
        assert result.lines[0].dates == [date(2030, 1, 14)]

    def test_total_sums_lines(self, make_session):
        first = make_session(fee_amount=100)
        second = make_session(fee_amount=45.5)

        result = enrollment.quote(
            [EnrollmentLine(first.id), EnrollmentLine(second.id)], today=BEFORE_TERM
        )

        assert result.total == Decimal("145.50")

    def test_trial_requires_class_date(self, session):
        with pytest.raises(ValidationError, match="not upcoming class dates"):
            enrollment.quote(
                [EnrollmentLine(session.id, "trial", trial_date=date(2030, 1, 15))], today=BEFORE_TERM
            )

    def test_trial_requires_date(self, session):
        with pytest.raises(ValidationError, match="trial date is required"):
            enrollment.quote([EnrollmentLine(session.id, "trial")], today=BEFORE_TERM)

    def test_past_partial_date_rejected(self, session):
        with pytest.raises(ValidationError):
            enrollment.quote(
                [EnrollmentLine(session.id, "partial", partial_dates=[date(2030, 1, 14)])], today=MID_TERM
            )

    def test_duplicate_partial_dates_rejected(self, session):
        with pytest.raises(ValidationError, match="Duplicate"):
            enrollment.quote(
                [EnrollmentLine(session.id, "partial", partial_dates=[date(2030, 1, 14), date(2030, 1, 14)])],
                today=BEFORE_TERM,
            )

    def test_duplicate_session_rejected(self, session):
        with pytest.raises(ValidationError, match="more than once"):
            enrollment.quote([EnrollmentLine(session.id), EnrollmentLine(session.id)], today=BEFORE_TERM)

    def test_no_remaining_classes(self, session):
        with pytest.raises(ValidationError, match="no remaining classes"):
            enrollment.quote([EnrollmentLine(session.id)], today=date(2030, 3, 26))

    def test_unknown_session(self):
        with pytest.raises(NotFoundError):
            enrollment.quote([EnrollmentLine("missing")], today=BEFORE_TERM)

    def test_line_from_dict_parses_dates(self):
        line = EnrollmentLine.from_dict(
            {"session_id": "s1", "enrollment_type": "partial", "partial_dates": ["2030-01-14"]}
        )

        assert line.partial_dates == [date(2030, 1, 14)]
        assert line.trial_date is None


class TestDirectEnrollment:
    """Tests for create_direct_enrollment."""

    def test_creates_active_paid_enrollment(self, customer, session):
        outcome = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", notes="Paid at desk", today=BEFORE_TERM
        )

        detail = outcome.detail
        assert detail.enrollment.enrollment_type == "direct"
        assert detail.enrollment.status == "active"
        assert detail.enrollment.payment_status == "paid"
        assert len(detail.bookings) == 1
        assert detail.bookings[0].fee_amount == 100.0
        payment = detail.payments[0]
        assert payment.payment_method == "cash"
        assert payment.payment_status == "completed"
        assert payment.amount == 100.0
        assert payment.notes == "Paid at desk"
        assert payment.receipt_number.startswith("RCP-")

    def test_partial_booking_stores_dates(self, customer, session):
        dates = [date(2030, 1, 21), date(2030, 1, 14)]
        outcome = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id, "partial", partial_dates=dates)], "cheque", today=BEFORE_TERM
        )

        assert outcome.detail.bookings[0].partial_dates == sorted(dates)
        assert outcome.amount_due == Decimal("16.67")

    def test_card_not_allowed(self, customer, session):
        with pytest.raises(ValidationError, match="cash"):
            enrollment.create_direct_enrollment(customer.id, [EnrollmentLine(session.id)], "card", today=BEFORE_TERM)

    def test_already_enrolled(self, customer, session):
        enrollment.create_direct_enrollment(customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM)

        with pytest.raises(ConflictError, match="already enrolled"):
            enrollment.create_direct_enrollment(
                customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
            )

    def test_blocked_customer_rejected(self, customer, session):
        customers.block_customer(customer.id, "Unpaid fees")

        with pytest.raises(ValidationError, match="blocked"):
            enrollment.create_direct_enrollment(customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM)

    def test_capacity_enforced(self, customer, make_session):
        small = make_session(class_capacity=1)
        enrollment.create_direct_enrollment(customer.id, [EnrollmentLine(small.id)], "cash", today=BEFORE_TERM)

        with pytest.raises(ConflictError, match="is full"):
            enrollment.create_direct_enrollment(
                _other_customer().id, [EnrollmentLine(small.id)], "cash", today=BEFORE_TERM
            )

    def test_failure_rolls_back_everything(self, customer, session, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("disk full")

        with monkeypatch.context() as m:
            m.setattr("sharecrm.db.enrollments_repository.insert_payment", fail)
            with pytest.raises(RuntimeError):
                enrollment.create_direct_enrollment(
                    customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
                )

        assert enrollment.list_enrollments(customer_id=customer.id) == []
        # Seat was never taken, so enrolling again succeeds
        enrollment.create_direct_enrollment(customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM)


class TestPortalEnrollment:
    """Tests for create_portal_enrollment."""

    def test_requires_accepted_paq(self, customer, session):
        with pytest.raises(ValidationError, match="PAQ"):
            enrollment.create_portal_enrollment(customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM)

    def test_paid_enrollment_waits_for_payment(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )

        assert outcome.payment_intent.startswith("pi_")
        assert outcome.currency == "aud"
        assert outcome.amount_due == Decimal("100.00")
        assert outcome.detail.enrollment.status == "pending"
        assert outcome.detail.enrollment.payment_intent == outcome.payment_intent
        payment = outcome.detail.payments[0]
        assert payment.payment_method == "card"
        assert payment.payment_status == "pending"
        assert payment.transaction_id == outcome.payment_intent

    def test_free_trial_is_active_immediately(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id,
            [EnrollmentLine(session.id, "trial", trial_date=date(2030, 1, 14))],
            today=BEFORE_TERM,
        )

        assert outcome.payment_intent is None
        assert outcome.detail.enrollment.status == "active"
        assert outcome.detail.enrollment.payment_status == "paid"
        assert outcome.detail.payments == []

    def test_pending_enrollment_holds_seat(self, approved_customer, make_session):
        small = make_session(class_capacity=1)
        enrollment.create_portal_enrollment(approved_customer.id, [EnrollmentLine(small.id)], today=BEFORE_TERM)

        with pytest.raises(ConflictError, match="is full"):
            enrollment.quote([EnrollmentLine(small.id)], today=BEFORE_TERM)


class TestCancelEnrollment:
    """Tests for cancel_enrollment."""

    def test_cancel_pending_cancels_payment(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )

        detail = enrollment.cancel_enrollment(outcome.detail.enrollment.id)

        assert detail.enrollment.status == "cancelled"
        assert detail.enrollment.payment_status == "cancelled"
        assert detail.payments[0].payment_status == "cancelled"

    def test_cancel_frees_session_for_customer(self, customer, session):
        outcome = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
        )
        enrollment.cancel_enrollment(outcome.detail.enrollment.id)

        again = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
        )
        assert again.detail.enrollment.status == "active"

    def test_cancel_twice_conflicts(self, customer, session):
        outcome = enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=BEFORE_TERM
        )
        enrollment.cancel_enrollment(outcome.detail.enrollment.id)

        with pytest.raises(ConflictError):
            enrollment.cancel_enrollment(outcome.detail.enrollment.id)

    def test_cancel_unknown(self):
        with pytest.raises(NotFoundError):
            enrollment.cancel_enrollment("missing")
