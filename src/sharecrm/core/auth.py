"""Sign-up, sign-in and bearer tokens.

Passwords are hashed with werkzeug; tokens are HS256 JWTs carrying the
user id (``sub``), role and expiry.
"""

from __future__ import annotations

import secrets
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
import structlog
from werkzeug.security import check_password_hash, generate_password_hash

from sharecrm.config.app_config import load_app_config
from sharecrm.core.errors import (
    AccountBlockedError,
    AuthenticationError,
    ConflictError,
    ValidationError,
)
from sharecrm.db.customers_repository import (
    get_customer_by_email,
    get_customer_by_user_id,
    insert_customer,
    update_customer,
)
from sharecrm.db.database import get_db
from sharecrm.db.staff_repository import (
    UserRecord,
    get_user,
    get_user_by_email,
    insert_user,
)
from sharecrm.utils.validators import new_id, require_email

logger = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


@dataclass
class SignInResult:
    access_token: str
    token_type: str
    expires_at: datetime
    user: UserRecord


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def generate_password() -> str:
    """Random initial password handed to new staff and instructors."""
    return secrets.token_urlsafe(12)


def validate_password(password: str | None) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password


def sign_up(email: str, password: str, first_name: str, surname: str) -> UserRecord:
    """Register a customer account.

    Creates the login user and its customer record. A customer record
    already entered by staff with the same email is linked instead of
    duplicated.

    Raises:
        ValidationError: If the email, password or names are invalid
        ConflictError: If the email is already registered
    """
    email = require_email(email)
    validate_password(password)
    first_name = (first_name or "").strip()
    surname = (surname or "").strip()
    if not first_name or not surname:
        raise ValidationError("First name and surname are required")

    user_id = new_id()
    try:
        with get_db() as conn:
            if get_user_by_email(conn, email) is not None:
                raise ConflictError(f"An account with email '{email}' already exists")
            insert_user(
                conn,
                user_id,
                {
                    "email": email,
                    "password_hash": hash_password(password),
                    "full_name": f"{first_name} {surname}",
                    "role": "customer",
                },
            )
            existing = get_customer_by_email(conn, email)
            if existing is not None:
                if existing.user_id:
                    raise ConflictError(f"Customer '{email}' is already linked to an account")
                update_customer(conn, existing.id, {"user_id": user_id})
            else:
                insert_customer(
                    conn,
                    new_id(),
                    {"user_id": user_id, "email": email, "first_name": first_name, "surname": surname},
                )
            user = get_user(conn, user_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"An account with email '{email}' already exists") from None

    logger.info("auth.signed_up", user_id=user_id)
    return user


def sign_in(email: str, password: str) -> SignInResult:
    """Authenticate and issue a bearer token.

    Raises:
        AuthenticationError: If the email or password is wrong
        AccountBlockedError: If the account is disabled or the customer is blocked
    """
    email = (email or "").strip().lower()
    with get_db() as conn:
        user = get_user_by_email(conn, email)
        if user is None or not verify_password(user.password_hash, password or ""):
            logger.info("auth.sign_in_failed", email=email)
            raise AuthenticationError("Invalid email or password")
        customer = get_customer_by_user_id(conn, user.id) if user.role == "customer" else None

    if user.disabled:
        raise AccountBlockedError(user.disabled_reason)
    if customer is not None and customer.status == "blocked":
        raise AccountBlockedError(customer.block_note)

    token, expires_at = create_token(user)
    logger.info("auth.signed_in", user_id=user.id, role=user.role)
    return SignInResult(access_token=token, token_type="bearer", expires_at=expires_at, user=user)


def create_token(user: UserRecord, now: datetime | None = None) -> tuple[str, datetime]:
    config = load_app_config().auth
    issued = now or datetime.now(timezone.utc)
    expires_at = issued + timedelta(minutes=config.token_ttl_minutes)
    payload = {
        "sub": user.id,
        "role": user.role,
        "iat": int(issued.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, config.get_secret_key(), algorithm=config.algorithm)
    return token, expires_at


def current_user(token: str) -> UserRecord:
    """Resolve a bearer token to its user.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
        AccountBlockedError: If the user has been disabled since sign-in
    """
    if not token:
        raise AuthenticationError("Not authenticated")
    config = load_app_config().auth
    try:
        payload = jwt.decode(token, config.get_secret_key(), algorithms=[config.algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired") from None
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token") from None

    with get_db() as conn:
        user = get_user(conn, payload.get("sub", ""))
    if user is None:
        raise AuthenticationError("Invalid token")
    if user.disabled:
        raise AccountBlockedError(user.disabled_reason)
    return user
