"""Tests for customer records, blocking, terminations, PAQ and credit."""

from datetime import date

import pytest

from sharecrm.core import auth, customers, enrollment
from sharecrm.core.enrollment import EnrollmentLine
from sharecrm.core.errors import (
    AccountBlockedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from sharecrm.core.storage import UploadedFile, get_storage

NO_PAQ = {q: False for q in customers.PAQ_QUESTIONS}


class TestCustomerRecords:
    """Tests for create/update/list/delete."""

    def test_create_normalizes_email(self):
        created = customers.create_customer(
            {"first_name": " Jane ", "surname": "Doe", "email": " Jane@Example.COM ", "suburb": "Norwood"}
        )

        assert created.first_name == "Jane"
        assert created.email == "jane@example.com"
        assert created.status == "active"
        assert created.customer_credit == 0
        assert created.profile["suburb"] == "Norwood"

    def test_create_requires_names(self):
        with pytest.raises(ValidationError, match="first_name"):
            customers.create_customer({"first_name": "", "surname": "Doe", "email": "a@example.com"})

    def test_create_rejects_bad_email(self):
        with pytest.raises(ValidationError, match="email"):
            customers.create_customer({"first_name": "A", "surname": "B", "email": "not-an-email"})

    def test_duplicate_email_conflicts(self, customer):
        with pytest.raises(ConflictError):
            customers.create_customer({"first_name": "Other", "surname": "Jane", "email": customer.email})

    def test_update_profile(self, customer):
        updated = customers.update_customer(customer.id, {"contact_no": "0422 222 222", "date_of_birth": "1950-05-01"})

        assert updated.contact_no == "0422 222 222"
        assert updated.profile["date_of_birth"] == "1950-05-01"

    def test_update_missing(self):
        with pytest.raises(NotFoundError):
            customers.update_customer("missing", {"contact_no": "1"})

    def test_search(self, customer):
        customers.create_customer({"first_name": "John", "surname": "Roe", "email": "john@example.com"})

        assert [c.email for c in customers.list_customers(search="jane")] == ["jane@example.com"]
        assert len(customers.list_customers()) == 2

    def test_delete_without_enrollments(self, customer):
        customers.delete_customer(customer.id)

        with pytest.raises(NotFoundError):
            customers.get_customer(customer.id)

    def test_delete_with_enrollments_conflicts(self, customer, session):
        enrollment.create_direct_enrollment(
            customer.id, [EnrollmentLine(session.id)], "cash", today=date(2029, 12, 1)
        )

        with pytest.raises(ConflictError):
            customers.delete_customer(customer.id)


class TestBlocking:
    """Tests for block_customer and unblock_customer."""

    def test_blocked_customer_cannot_sign_in(self):
        auth.sign_up("blocked@example.com", "secret-pass", "Bo", "Blocked")
        target = customers.list_customers(search="blocked@example.com")[0]

        customers.block_customer(target.id, "Abusive behaviour")

        with pytest.raises(AccountBlockedError, match="Abusive behaviour"):
            auth.sign_in("blocked@example.com", "secret-pass")

    def test_unblock_restores_sign_in(self):
        auth.sign_up("blocked@example.com", "secret-pass", "Bo", "Blocked")
        target = customers.list_customers(search="blocked@example.com")[0]
        customers.block_customer(target.id, "Mistake")

        unblocked = customers.unblock_customer(target.id)

        assert unblocked.status == "active"
        assert unblocked.block_note is None
        assert auth.sign_in("blocked@example.com", "secret-pass").access_token

    def test_block_requires_note(self, customer):
        with pytest.raises(ValidationError):
            customers.block_customer(customer.id, " ")

    def test_unblock_active_conflicts(self, customer):
        with pytest.raises(ConflictError):
            customers.unblock_customer(customer.id)


class TestTerminations:
    """Tests for membership termination requests."""

    def test_request_and_accept(self, customer):
        termination = customers.request_termination(customer.id, "2030-06-30", "Moving interstate")
        assert termination.status == "pending"
        assert termination.termination_date == "2030-06-30"

        reviewed = customers.review_termination(termination.id, "accepted", "Farewell")

        assert reviewed.status == "accepted"
        assert reviewed.admin_notes == "Farewell"
        assert customers.get_customer(customer.id).status == "inactive"

    def test_reject_keeps_customer_active(self, customer):
        termination = customers.request_termination(customer.id, "2030-06-30", "Moving interstate")

        customers.review_termination(termination.id, "rejected")

        assert customers.get_customer(customer.id).status == "active"

    def test_reason_minimum_length(self, customer):
        with pytest.raises(ValidationError, match="10 characters"):
            customers.request_termination(customer.id, "2030-06-30", "Too far")

    def test_one_pending_request(self, customer):
        customers.request_termination(customer.id, "2030-06-30", "Moving interstate")

        with pytest.raises(ConflictError):
            customers.request_termination(customer.id, "2030-07-31", "Changed my mind again")

    def test_list_by_status(self, customer):
        termination = customers.request_termination(customer.id, "2030-06-30", "Moving interstate")

        assert [t.id for t in customers.list_terminations(status="pending")] == [termination.id]
        assert customers.list_terminations(status="accepted") == []


class TestPaq:
    """Tests for the Pre-Activity Questionnaire."""

    def test_all_no_needs_no_document(self, customer):
        submitted = customers.submit_paq(customer.id, NO_PAQ)

        assert submitted.paq_form is True
        assert submitted.paq_status == "pending"
        assert submitted.paq_answers == NO_PAQ
        assert submitted.paq_filled_date is not None

    def test_yes_answer_requires_document(self, customer):
        answers = {**NO_PAQ, "asthma": True}

        with pytest.raises(ValidationError, match="medical clearance"):
            customers.submit_paq(customer.id, answers)

    def test_yes_answer_with_document(self, customer):
        answers = {**NO_PAQ, "asthma": True}
        document = UploadedFile("clearance.png", "image/png", b"\x89PNG data")

        submitted = customers.submit_paq(customer.id, answers, document)

        assert submitted.paq_answers["asthma"] is True
        assert get_storage().open("paq-documents", submitted.paq_document_path) == document.data

    def test_all_questions_required(self, customer):
        answers = dict(NO_PAQ)
        answers.pop("diabetes")

        with pytest.raises(ValidationError, match="diabetes"):
            customers.submit_paq(customer.id, answers)

    def test_unknown_question_rejected(self, customer):
        with pytest.raises(ValidationError, match="Unknown"):
            customers.submit_paq(customer.id, {**NO_PAQ, "favourite_colour": True})

    def test_review_queue(self, customer):
        customers.submit_paq(customer.id, NO_PAQ)
        assert [c.id for c in customers.pending_paq_reviews()] == [customer.id]

        reviewed = customers.review_paq(customer.id, "accepted")

        assert reviewed.paq_status == "accepted"
        assert customers.pending_paq_reviews() == []

    def test_review_without_form_conflicts(self, customer):
        with pytest.raises(ConflictError):
            customers.review_paq(customer.id, "accepted")


class TestCredit:
    """Tests for adjust_credit."""

    def test_add_and_spend(self, customer):
        customers.adjust_credit(customer.id, 2)
        updated = customers.adjust_credit(customer.id, -1)

        assert updated.customer_credit == 1

    def test_never_negative(self, customer):
        with pytest.raises(ConflictError, match="Insufficient"):
            customers.adjust_credit(customer.id, -1)

        assert customers.get_customer(customer.id).customer_credit == 0

    def test_zero_delta_rejected(self, customer):
        with pytest.raises(ValidationError):
            customers.adjust_credit(customer.id, 0)

    def test_unknown_customer(self):
        with pytest.raises(NotFoundError):
            customers.adjust_credit("missing", 1)
