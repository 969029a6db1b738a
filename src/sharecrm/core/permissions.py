"""Permission catalog, staff roles and staff accounts.

Admin users are granted capabilities only through the permissions of
their staff role. A check is plain membership of the permission name in
that list; there is no implicit superuser.
"""

from __future__ import annotations

import sqlite3
from typing import Any

import structlog

from sharecrm.core.auth import generate_password, hash_password, validate_password
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError
from sharecrm.db import staff_repository as repo
from sharecrm.db.database import get_db
from sharecrm.utils.validators import new_id, require_email

logger = structlog.get_logger(__name__)

PERMISSIONS: dict[str, str] = {
    "booking_create": "Create bookings",
    "booking_read": "View bookings and cancellation requests",
    "booking_update": "Review booking cancellations",
    "booking_delete": "Cancel enrollments",
    "class_create": "Create classes, sessions, terms and venues",
    "class_read": "View classes, sessions, rosters and class cancellations",
    "class_update": "Edit classes, review class cancellations and mark attendance",
    "create_enrollments": "Enroll customers directly",
    "customer_create": "Create customers",
    "customer_read": "View customers, PAQ forms and terminations",
    "customer_update": "Edit, block and credit customers",
    "instructor_create": "Create instructors",
    "instructor_read": "View instructors",
    "instructor_update": "Edit instructors",
    "report_read": "Download reports and class rolls",
    "roles_manage": "Manage staff, roles and emailing lists",
}

SUPER_ADMIN_ROLE = "Super Admin"


def seed_permissions() -> int:
    """Insert any missing catalog permissions.

    Returns:
        Number of permissions inserted (0 when already seeded)
    """
    inserted = 0
    with get_db() as conn:
        for name, description in PERMISSIONS.items():
            if repo.upsert_permission(conn, new_id(), name, description):
                inserted += 1
    if inserted:
        logger.info("permissions.seeded", inserted=inserted)
    return inserted


def list_permissions() -> list[repo.PermissionRecord]:
    with get_db() as conn:
        return repo.list_permissions(conn)


def user_permissions(user: repo.UserRecord) -> list[str]:
    """Permission names granted by the user's staff role."""
    if not user.staff_role_id:
        return []
    with get_db() as conn:
        return repo.role_permission_names(conn, user.staff_role_id)


def has_permission(user: repo.UserRecord, name: str, granted: list[str] | None = None) -> bool:
    if granted is None:
        granted = user_permissions(user)
    return name in granted


# =============================================================================
# STAFF ROLES
# =============================================================================


def create_staff_role(name: str, description: str | None = None, permissions: list[str] | None = None) -> repo.StaffRoleRecord:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Role name is required")
    role_id = new_id()
    try:
        with get_db() as conn:
            repo.insert_staff_role(conn, role_id, name, description)
            if permissions:
                _replace_permissions(conn, role_id, permissions)
            role = repo.get_staff_role(conn, role_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"Role '{name}' already exists") from None
    logger.info("staff_roles.created", role_id=role_id, name=name)
    return role


def update_staff_role(role_id: str, name: str | None = None, description: str | None = None) -> repo.StaffRoleRecord:
    try:
        with get_db() as conn:
            role = repo.get_staff_role(conn, role_id)
            if role is None:
                raise NotFoundError("Staff role", role_id)
            repo.update_staff_role(
                conn,
                role_id,
                (name or role.name).strip(),
                description if description is not None else role.description,
            )
            return repo.get_staff_role(conn, role_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"Role '{name}' already exists") from None


def delete_staff_role(role_id: str) -> None:
    with get_db() as conn:
        if not repo.delete_staff_role(conn, role_id):
            raise NotFoundError("Staff role", role_id)
    logger.info("staff_roles.deleted", role_id=role_id)


def list_staff_roles() -> list[repo.StaffRoleRecord]:
    with get_db() as conn:
        return repo.list_staff_roles(conn)


def assign_permissions(role_id: str, names: list[str]) -> repo.StaffRoleRecord:
    """Replace a role's permission set with ``names``.

    Raises:
        NotFoundError: If the role does not exist
        ValidationError: If a name is not in the permission catalog
    """
    with get_db() as conn:
        if repo.get_staff_role(conn, role_id) is None:
            raise NotFoundError("Staff role", role_id)
        _replace_permissions(conn, role_id, names)
        role = repo.get_staff_role(conn, role_id)
    logger.info("staff_roles.permissions_assigned", role_id=role_id, count=len(role.permissions))
    return role


def _replace_permissions(conn: sqlite3.Connection, role_id: str, names: list[str]) -> None:
    unique = sorted(set(names))
    unknown = [name for name in unique if name not in PERMISSIONS]
    if unknown:
        raise ValidationError(f"Unknown permission(s): {', '.join(unknown)}")
    ids = repo.permission_ids_by_name(conn, unique)
    missing = [name for name in unique if name not in ids]
    if missing:
        raise ValidationError(f"Permissions not seeded: {', '.join(missing)}")
    repo.replace_role_permissions(conn, role_id, [ids[name] for name in unique])


def ensure_super_admin_role() -> repo.StaffRoleRecord:
    """Get or create the role holding every catalog permission."""
    seed_permissions()
    with get_db() as conn:
        role = repo.get_staff_role_by_name(conn, SUPER_ADMIN_ROLE)
    if role is None:
        return create_staff_role(SUPER_ADMIN_ROLE, "Full access", list(PERMISSIONS))
    if set(role.permissions) != set(PERMISSIONS):
        role = assign_permissions(role.id, list(PERMISSIONS))
    return role


# =============================================================================
# STAFF ACCOUNTS
# =============================================================================


def create_staff(
    full_name: str,
    email: str,
    staff_role_id: str | None,
    phone: str | None = None,
    bio: str | None = None,
    password: str | None = None,
) -> tuple[repo.UserRecord, str | None]:
    """Create an admin staff account.

    Returns:
        Tuple of (user, generated password or None if one was supplied)

    Raises:
        ValidationError: If the name, email or password is invalid
        NotFoundError: If the staff role does not exist
        ConflictError: If the email is already registered
    """
    full_name = (full_name or "").strip()
    if not full_name:
        raise ValidationError("Full name is required")
    email = require_email(email)
    generated = None
    if password:
        validate_password(password)
    else:
        generated = password = generate_password()

    user_id = new_id()
    with get_db() as conn:
        if staff_role_id and repo.get_staff_role(conn, staff_role_id) is None:
            raise NotFoundError("Staff role", staff_role_id)
        if repo.get_user_by_email(conn, email) is not None:
            raise ConflictError(f"A user with email '{email}' already exists")
        repo.insert_user(
            conn,
            user_id,
            {
                "email": email,
                "password_hash": hash_password(password),
                "full_name": full_name,
                "role": "admin",
                "staff_role_id": staff_role_id,
                "phone": phone,
                "bio": bio,
            },
        )
        user = repo.get_user(conn, user_id)
    logger.info("staff.created", user_id=user_id, staff_role_id=staff_role_id)
    return user, generated


def update_staff(user_id: str, values: dict[str, Any]) -> repo.UserRecord:
    """Update a staff account's profile, role or enabled state."""
    allowed = {k: v for k, v in values.items() if k in ("full_name", "staff_role_id", "phone", "bio", "disabled")}
    if "password" in values and values["password"]:
        allowed["password_hash"] = hash_password(validate_password(values["password"]))
    if "disabled" in allowed:
        allowed["disabled"] = 1 if allowed["disabled"] else 0
    with get_db() as conn:
        user = repo.get_user(conn, user_id)
        if user is None or user.role != "admin":
            raise NotFoundError("Staff member", user_id)
        role_id = allowed.get("staff_role_id")
        if role_id and repo.get_staff_role(conn, role_id) is None:
            raise NotFoundError("Staff role", role_id)
        repo.update_user(conn, user_id, allowed)
        return repo.get_user(conn, user_id)


def list_staff() -> list[repo.UserRecord]:
    with get_db() as conn:
        return repo.list_users(conn, role="admin")
