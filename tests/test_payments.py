"""Tests for receipts, webhook signatures and payment events."""

import re
from datetime import date, datetime, timezone

import pytest

from sharecrm.core import enrollment, payments
from sharecrm.core.enrollment import EnrollmentLine
from sharecrm.core.errors import PaymentSignatureError

BEFORE_TERM = date(2029, 12, 1)


def _event(event_type, intent_id):
    return {"type": event_type, "data": {"object": {"id": intent_id, "latest_charge": "ch_123"}}}


class TestReceipts:
    """Tests for receipt and intent identifiers."""

    def test_receipt_format(self):
        receipt = payments.generate_receipt_number(datetime(2030, 1, 7, tzinfo=timezone.utc))
        assert re.fullmatch(r"RCP-20300107-[A-Z0-9]{6}", receipt)

    def test_payment_intent_prefix(self):
        assert payments.generate_payment_intent_id().startswith("pi_")


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid_signature(self):
        payload = b'{"type": "payment_intent.succeeded"}'
        header = payments.sign_payload(payload, "secret", timestamp=1000)

        payments.verify_signature(payload, header, "secret", now=1100)

    def test_mismatch(self):
        header = payments.sign_payload(b"original", "secret", timestamp=1000)

        with pytest.raises(PaymentSignatureError, match="mismatch"):
            payments.verify_signature(b"tampered", header, "secret", now=1000)

    def test_stale_timestamp(self):
        header = payments.sign_payload(b"{}", "secret", timestamp=1000)

        with pytest.raises(PaymentSignatureError, match="tolerance"):
            payments.verify_signature(b"{}", header, "secret", tolerance=300, now=1301)

    def test_missing_header(self):
        with pytest.raises(PaymentSignatureError, match="Missing"):
            payments.verify_signature(b"{}", None, "secret")

    def test_malformed_header(self):
        with pytest.raises(PaymentSignatureError, match="Malformed"):
            payments.verify_signature(b"{}", "v1=abc", "secret")

    def test_secret_not_configured(self):
        with pytest.raises(PaymentSignatureError, match="not configured"):
            payments.verify_signature(b"{}", "t=1,v1=abc", "")


class TestHandleEvent:
    """Tests for handle_event against a pending portal enrollment."""

    @pytest.fixture
    def pending(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )
        return outcome

    def test_succeeded_activates_enrollment(self, pending):
        result = payments.handle_event(_event("payment_intent.succeeded", pending.payment_intent))

        assert result.handled is True
        detail = enrollment.get_enrollment(pending.detail.enrollment.id)
        assert detail.enrollment.status == "active"
        assert detail.enrollment.payment_status == "paid"
        assert detail.payments[0].payment_status == "completed"
        assert detail.payments[0].transaction_id == "ch_123"
        assert detail.payments[0].payment_date is not None

    def test_succeeded_twice_is_idempotent(self, pending):
        payments.handle_event(_event("payment_intent.succeeded", pending.payment_intent))
        again = payments.handle_event(_event("payment_intent.succeeded", pending.payment_intent))

        assert again.handled is False
        assert again.message == "Already processed"

    def test_failed_cancels_enrollment(self, pending):
        payments.handle_event(_event("payment_intent.payment_failed", pending.payment_intent))

        detail = enrollment.get_enrollment(pending.detail.enrollment.id)
        assert detail.enrollment.status == "cancelled"
        assert detail.enrollment.payment_status == "failed"
        assert detail.payments[0].payment_status == "failed"

    def test_canceled_intent_cancels_enrollment(self, pending):
        result = payments.handle_event(_event("payment_intent.canceled", pending.payment_intent))

        assert result.handled is True
        detail = enrollment.get_enrollment(pending.detail.enrollment.id)
        assert detail.enrollment.status == "cancelled"
        assert detail.enrollment.payment_status == "cancelled"
        assert detail.payments[0].payment_status == "cancelled"
        assert detail.payments[0].transaction_id == pending.payment_intent

    def test_late_success_does_not_revive_cancelled_enrollment(self, pending, approved_customer, session):
        enrollment.cancel_enrollment(pending.detail.enrollment.id)
        again = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )

        result = payments.handle_event(_event("payment_intent.succeeded", pending.payment_intent))

        assert result.handled is False
        first = enrollment.get_enrollment(pending.detail.enrollment.id)
        assert first.enrollment.status == "cancelled"
        assert first.payments[0].payment_status == "cancelled"
        assert enrollment.get_enrollment(again.detail.enrollment.id).enrollment.status == "pending"

    def test_success_after_failure_ignored(self, pending):
        payments.handle_event(_event("payment_intent.payment_failed", pending.payment_intent))

        result = payments.handle_event(_event("payment_intent.succeeded", pending.payment_intent))

        assert result.handled is False
        assert enrollment.get_enrollment(pending.detail.enrollment.id).enrollment.status == "cancelled"

    def test_unknown_intent_acknowledged(self):
        result = payments.handle_event(_event("payment_intent.succeeded", "pi_unknown"))
        assert result.handled is False

    def test_unknown_event_type_ignored(self):
        result = payments.handle_event({"type": "charge.captured", "data": {"object": {}}})
        assert result.handled is False
        assert result.event_type == "charge.captured"


class TestChargeEvents:
    """Tests for refunds and disputes on a paid portal enrollment."""

    @pytest.fixture
    def paid(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )
        payments.handle_event(_event("payment_intent.succeeded", outcome.payment_intent))
        return outcome

    def test_refund_cancels_enrollment(self, paid):
        charge = {"id": "ch_123", "payment_intent": paid.payment_intent}

        result = payments.handle_event({"type": "charge.refunded", "data": {"object": charge}})

        assert result.handled is True
        detail = enrollment.get_enrollment(paid.detail.enrollment.id)
        assert detail.enrollment.status == "cancelled"
        assert detail.enrollment.payment_status == "refunded"
        assert detail.payments[0].payment_status == "refunded"
        assert detail.payments[0].transaction_id == "ch_123"

    def test_refund_located_by_metadata(self, paid):
        enrollment_id = paid.detail.enrollment.id
        charge = {"id": "ch_123", "metadata": {"enrollment_id": enrollment_id}}

        assert payments.handle_event({"type": "charge.refunded", "data": {"object": charge}}).handled is True
        assert enrollment.get_enrollment(enrollment_id).enrollment.payment_status == "refunded"

    def test_dispute_keeps_enrollment_active(self, paid):
        dispute = {"id": "dp_1", "payment_intent": paid.payment_intent}

        result = payments.handle_event({"type": "charge.dispute.created", "data": {"object": dispute}})

        assert result.handled is True
        detail = enrollment.get_enrollment(paid.detail.enrollment.id)
        assert detail.enrollment.status == "active"
        assert detail.enrollment.payment_status == "disputed"
        assert detail.payments[0].payment_status == "disputed"

    def test_refund_of_unpaid_enrollment_ignored(self, approved_customer, session):
        outcome = enrollment.create_portal_enrollment(
            approved_customer.id, [EnrollmentLine(session.id)], today=BEFORE_TERM
        )
        charge = {"id": "ch_9", "payment_intent": outcome.payment_intent}

        result = payments.handle_event({"type": "charge.refunded", "data": {"object": charge}})

        assert result.handled is False
        assert enrollment.get_enrollment(outcome.detail.enrollment.id).enrollment.status == "pending"
