"""Request dependencies: bearer authentication and access checks."""

from __future__ import annotations

from typing import Callable

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sharecrm.core import auth, catalog, customers, permissions
from sharecrm.core.errors import PermissionDeniedError
from sharecrm.db.catalog_repository import InstructorRecord
from sharecrm.db.customers_repository import CustomerRecord
from sharecrm.db.staff_repository import UserRecord

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> UserRecord:
    """Resolve the bearer token; errors become 401/403 via the app handler."""
    return auth.current_user(credentials.credentials if credentials else "")


def require_role(*roles: str) -> Callable[..., UserRecord]:
    def dependency(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if user.role not in roles:
            raise PermissionDeniedError(f"This area requires role: {', '.join(roles)}")
        return user

    return dependency


def require_permission(name: str) -> Callable[..., UserRecord]:
    """Staff user whose role grants ``name``."""

    def dependency(user: UserRecord = Depends(require_role("admin"))) -> UserRecord:
        if not permissions.has_permission(user, name):
            raise PermissionDeniedError(f"Missing permission: {name}")
        return user

    return dependency


def get_current_customer(user: UserRecord = Depends(require_role("customer"))) -> CustomerRecord:
    return customers.get_customer_for_user(user.id)


def get_current_instructor(user: UserRecord = Depends(require_role("instructor"))) -> InstructorRecord:
    return catalog.get_instructor_for_user(user.id)
