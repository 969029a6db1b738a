"""Customer records, blocking, terminations, PAQ forms and credit.

Blocking disables the customer's login as well as flagging the record,
so a blocked customer cannot sign in until unblocked.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import date
from typing import Any

import structlog

from sharecrm.core import notifications
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError
from sharecrm.core.storage import DOCUMENT_CONTENT_TYPES, UploadedFile, get_storage
from sharecrm.db import customers_repository as repo
from sharecrm.db.database import get_db
from sharecrm.db.staff_repository import update_user
from sharecrm.utils.validators import new_id, parse_date, require_email, utc_now_iso

logger = structlog.get_logger(__name__)

# Pre-Activity Questionnaire question ids, in form order
PAQ_QUESTIONS: dict[str, str] = {
    "heart_condition": "Has your doctor ever said you have a heart condition?",
    "chest_pain": "Do you feel pain in your chest when you do physical activity?",
    "dizziness": "Do you lose your balance because of dizziness or lose consciousness?",
    "asthma": "Do you have asthma or another breathing condition?",
    "diabetes": "Do you have diabetes or trouble controlling blood sugar?",
    "joint_problems": "Do you have a bone or joint problem made worse by activity?",
    "other_medical": "Is there any other medical reason you should not exercise?",
    "medical_clearance": "Have you been advised to seek medical clearance before exercising?",
}

MIN_TERMINATION_REASON = 10
REVIEW_STATUSES = ("accepted", "rejected")


# =============================================================================
# PROFILES
# =============================================================================


def create_customer(values: dict[str, Any]) -> repo.CustomerRecord:
    """Create a customer entered by staff.

    Raises:
        ValidationError: If names are missing or the email is invalid
        ConflictError: If the email is already used by another customer
    """
    cleaned = _clean_profile(values, require_names=True)
    customer_id = new_id()
    try:
        with get_db() as conn:
            repo.insert_customer(conn, customer_id, cleaned)
            customer = repo.get_customer(conn, customer_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"A customer with email '{cleaned['email']}' already exists") from None
    logger.info("customers.created", customer_id=customer_id)
    notifications.notify(
        "customer_profile_updates",
        f"New customer: {customer.full_name}",
        f"<p>{customer.full_name} ({customer.email}) was added as a customer.</p>",
    )
    return customer


def update_customer(customer_id: str, values: dict[str, Any], notify_staff: bool = False) -> repo.CustomerRecord:
    """Update profile fields.

    Args:
        customer_id: Customer to update
        values: Profile fields to change
        notify_staff: Email the customer_profile_updates list (portal edits)
    """
    cleaned = _clean_profile(values, require_names=False)
    try:
        with get_db() as conn:
            if not repo.update_customer(conn, customer_id, cleaned):
                raise NotFoundError("Customer", customer_id)
            customer = repo.get_customer(conn, customer_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"A customer with email '{cleaned.get('email')}' already exists") from None

    logger.info("customers.updated", customer_id=customer_id, fields=sorted(cleaned))
    if notify_staff and cleaned:
        notifications.notify(
            "customer_profile_updates",
            f"Profile updated: {customer.full_name}",
            f"<p>{customer.full_name} ({customer.email}) updated: {', '.join(sorted(cleaned))}.</p>",
        )
    return customer


def get_customer(customer_id: str) -> repo.CustomerRecord:
    with get_db() as conn:
        customer = repo.get_customer(conn, customer_id)
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


def get_customer_for_user(user_id: str) -> repo.CustomerRecord:
    with get_db() as conn:
        customer = repo.get_customer_by_user_id(conn, user_id)
    if customer is None:
        raise NotFoundError("Customer profile for user", user_id)
    return customer


def list_customers(search: str | None = None, status: str | None = None) -> list[repo.CustomerRecord]:
    with get_db() as conn:
        return repo.list_customers(conn, search, status)


def delete_customer(customer_id: str) -> None:
    """Delete a customer without enrollments.

    Raises:
        NotFoundError: If the customer does not exist
        ConflictError: If the customer has enrollments
    """
    try:
        with get_db() as conn:
            if not repo.delete_customer(conn, customer_id):
                raise NotFoundError("Customer", customer_id)
    except sqlite3.IntegrityError:
        raise ConflictError("Customer has enrollments and cannot be deleted") from None
    logger.info("customers.deleted", customer_id=customer_id)


def _clean_profile(values: dict[str, Any], require_names: bool) -> dict[str, Any]:
    cleaned = {k: v for k, v in values.items() if k in repo.PROFILE_FIELDS}
    for name in ("first_name", "surname"):
        if require_names or name in cleaned:
            if not str(cleaned.get(name) or "").strip():
                raise ValidationError(f"{name} is required")
            cleaned[name] = cleaned[name].strip()
    if require_names or "email" in cleaned:
        cleaned["email"] = require_email(cleaned.get("email"))
    if cleaned.get("date_of_birth"):
        cleaned["date_of_birth"] = parse_date(cleaned["date_of_birth"], "date_of_birth").isoformat()
    if cleaned.get("australian_citizen") is not None:
        cleaned["australian_citizen"] = 1 if cleaned["australian_citizen"] else 0
    return cleaned


# =============================================================================
# BLOCKING
# =============================================================================


def block_customer(customer_id: str, note: str) -> repo.CustomerRecord:
    """Block a customer and disable their login."""
    note = (note or "").strip()
    if not note:
        raise ValidationError("A block note is required")
    with get_db() as conn:
        customer = repo.get_customer(conn, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        repo.update_customer(
            conn, customer_id, {"status": "blocked", "block_note": note, "blocked_at": utc_now_iso()}
        )
        if customer.user_id:
            update_user(conn, customer.user_id, {"disabled": 1, "disabled_reason": note})
        customer = repo.get_customer(conn, customer_id)
    logger.info("customers.blocked", customer_id=customer_id)
    return customer


def unblock_customer(customer_id: str) -> repo.CustomerRecord:
    with get_db() as conn:
        customer = repo.get_customer(conn, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        if customer.status != "blocked":
            raise ConflictError("Customer is not blocked")
        repo.update_customer(
            conn, customer_id, {"status": "active", "block_note": None, "blocked_at": None}
        )
        if customer.user_id:
            update_user(conn, customer.user_id, {"disabled": 0, "disabled_reason": None})
        customer = repo.get_customer(conn, customer_id)
    logger.info("customers.unblocked", customer_id=customer_id)
    return customer


# =============================================================================
# TERMINATIONS
# =============================================================================


def request_termination(
    customer_id: str,
    termination_date: str | date,
    reason: str,
    admin_notes: str | None = None,
) -> repo.TerminationRecord:
    """Record a membership termination request (pending review).

    Raises:
        ValidationError: If the reason is shorter than 10 characters
        ConflictError: If a pending request already exists
    """
    reason = (reason or "").strip()
    if len(reason) < MIN_TERMINATION_REASON:
        raise ValidationError(f"Reason must be at least {MIN_TERMINATION_REASON} characters")
    when = parse_date(termination_date, "termination_date")

    termination_id = new_id()
    with get_db() as conn:
        if repo.get_customer(conn, customer_id) is None:
            raise NotFoundError("Customer", customer_id)
        if repo.list_terminations(conn, status="pending", customer_id=customer_id):
            raise ConflictError("A termination request is already pending")
        repo.insert_termination(conn, termination_id, customer_id, when.isoformat(), reason, admin_notes)
        termination = repo.get_termination(conn, termination_id)
    logger.info("terminations.requested", termination_id=termination_id, customer_id=customer_id)
    return termination


def review_termination(termination_id: str, status: str, admin_notes: str | None = None) -> repo.TerminationRecord:
    """Accept or reject a termination; acceptance deactivates the customer."""
    if status not in REVIEW_STATUSES:
        raise ValidationError("Status must be 'accepted' or 'rejected'")
    with get_db() as conn:
        termination = repo.get_termination(conn, termination_id)
        if termination is None:
            raise NotFoundError("Termination", termination_id)
        repo.update_termination(
            conn, termination_id, status, admin_notes if admin_notes is not None else termination.admin_notes
        )
        if status == "accepted":
            repo.update_customer(conn, termination.customer_id, {"status": "inactive"})
        termination = repo.get_termination(conn, termination_id)
    logger.info("terminations.reviewed", termination_id=termination_id, status=status)
    return termination


def list_terminations(status: str | None = None, customer_id: str | None = None) -> list[repo.TerminationRecord]:
    with get_db() as conn:
        return repo.list_terminations(conn, status, customer_id)


# =============================================================================
# PAQ
# =============================================================================


def submit_paq(
    customer_id: str,
    answers: dict[str, bool],
    document: UploadedFile | None = None,
) -> repo.CustomerRecord:
    """Store a completed Pre-Activity Questionnaire for review.

    Args:
        customer_id: Customer submitting the form
        answers: Every PAQ question id mapped to yes (True) / no (False)
        document: Medical clearance, required when any answer is yes

    Raises:
        ValidationError: If answers are incomplete or a required document is missing
    """
    unknown = sorted(set(answers) - set(PAQ_QUESTIONS))
    if unknown:
        raise ValidationError(f"Unknown PAQ question(s): {', '.join(unknown)}")
    missing = [q for q in PAQ_QUESTIONS if q not in answers]
    if missing:
        raise ValidationError(f"Please answer all questions (missing: {', '.join(missing)})")

    normalized = {q: bool(answers[q]) for q in PAQ_QUESTIONS}
    needs_document = any(normalized.values())
    if needs_document and document is None:
        raise ValidationError("A medical clearance document is required when any answer is yes")

    customer = get_customer(customer_id)
    document_path = customer.paq_document_path
    if document is not None:
        document_path = get_storage().upload(
            "paq-documents",
            document.filename,
            document.data,
            document.content_type,
            allowed_types=DOCUMENT_CONTENT_TYPES,
            folder=customer_id,
        )

    with get_db() as conn:
        repo.update_customer(
            conn,
            customer_id,
            {
                "paq_form": 1,
                "paq_status": "pending",
                "paq_answers": json.dumps(normalized),
                "paq_document_path": document_path,
                "paq_filled_date": utc_now_iso(),
            },
        )
        customer = repo.get_customer(conn, customer_id)

    logger.info("paq.submitted", customer_id=customer_id, document=document is not None)
    notifications.notify(
        "paq_forms",
        f"PAQ submitted: {customer.full_name}",
        f"<p>{customer.full_name} ({customer.email}) submitted a PAQ form for review.</p>",
    )
    return customer


def review_paq(customer_id: str, status: str) -> repo.CustomerRecord:
    if status not in REVIEW_STATUSES:
        raise ValidationError("Status must be 'accepted' or 'rejected'")
    with get_db() as conn:
        customer = repo.get_customer(conn, customer_id)
        if customer is None:
            raise NotFoundError("Customer", customer_id)
        if not customer.paq_form:
            raise ConflictError("Customer has not submitted a PAQ form")
        repo.update_customer(conn, customer_id, {"paq_status": status})
        customer = repo.get_customer(conn, customer_id)
    logger.info("paq.reviewed", customer_id=customer_id, status=status)
    return customer


def pending_paq_reviews() -> list[repo.CustomerRecord]:
    with get_db() as conn:
        return repo.list_pending_paq(conn)


# =============================================================================
# CREDIT
# =============================================================================


def adjust_credit(customer_id: str, delta: int) -> repo.CustomerRecord:
    """Add (or with a negative delta, spend) class credit.

    Raises:
        NotFoundError: If the customer does not exist
        ConflictError: If the balance would drop below zero
    """
    if delta == 0:
        raise ValidationError("Credit adjustment must not be zero")
    with get_db() as conn:
        if not repo.increment_credit(conn, customer_id, delta):
            if repo.get_customer(conn, customer_id) is None:
                raise NotFoundError("Customer", customer_id)
            raise ConflictError("Insufficient credit")
        customer = repo.get_customer(conn, customer_id)
    logger.info("customers.credit_adjusted", customer_id=customer_id, delta=delta, balance=customer.customer_credit)
    return customer
