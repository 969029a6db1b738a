"""Repository functions for user accounts, staff roles and permissions."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from sharecrm.utils.validators import utc_now_iso

logger = structlog.get_logger(__name__)

USER_FIELDS = (
    "email",
    "password_hash",
    "full_name",
    "role",
    "staff_role_id",
    "phone",
    "bio",
    "disabled",
    "disabled_reason",
)


@dataclass
class UserRecord:
    """Login account (customer, instructor or admin staff)."""

    id: str
    email: str
    password_hash: str
    full_name: str
    role: str
    staff_role_id: str | None
    phone: str | None
    bio: str | None
    disabled: bool
    disabled_reason: str | None
    created_at: str
    updated_at: str
    staff_role_name: str | None = None


@dataclass
class StaffRoleRecord:
    id: str
    name: str
    description: str | None
    permissions: list[str]


@dataclass
class PermissionRecord:
    id: str
    name: str
    description: str | None


# =============================================================================
# USERS
# =============================================================================

_USER_SELECT = """
    SELECT u.*, r.name AS staff_role_name
    FROM users u
    LEFT JOIN staff_roles r ON r.id = u.staff_role_id
"""


def insert_user(conn: sqlite3.Connection, user_id: str, values: dict[str, Any]) -> None:
    """Insert a user.

    Raises:
        sqlite3.IntegrityError: If the email is already registered
    """
    columns = {k: v for k, v in values.items() if k in USER_FIELDS}
    columns["id"] = user_id
    names = ", ".join(columns)
    placeholders = ", ".join("?" for _ in columns)
    conn.execute(f"INSERT INTO users ({names}) VALUES ({placeholders})", tuple(columns.values()))
    logger.debug("users.inserted", user_id=user_id, role=columns.get("role"))


def update_user(conn: sqlite3.Connection, user_id: str, values: dict[str, Any]) -> bool:
    columns = {k: v for k, v in values.items() if k in USER_FIELDS}
    if not columns:
        return get_user(conn, user_id) is not None
    assignments = ", ".join(f"{name} = ?" for name in columns)
    cursor = conn.execute(
        f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
        (*columns.values(), utc_now_iso(), user_id),
    )
    return cursor.rowcount > 0


def get_user(conn: sqlite3.Connection, user_id: str) -> UserRecord | None:
    row = conn.execute(f"{_USER_SELECT} WHERE u.id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def get_user_by_email(conn: sqlite3.Connection, email: str) -> UserRecord | None:
    row = conn.execute(f"{_USER_SELECT} WHERE u.email = ?", (email,)).fetchone()
    return _row_to_user(row) if row else None


def list_users(conn: sqlite3.Connection, role: str | None = None) -> list[UserRecord]:
    if role:
        rows = conn.execute(
            f"{_USER_SELECT} WHERE u.role = ? ORDER BY u.full_name", (role,)
        ).fetchall()
    else:
        rows = conn.execute(f"{_USER_SELECT} ORDER BY u.full_name").fetchall()
    return [_row_to_user(row) for row in rows]


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        password_hash=row["password_hash"],
        full_name=row["full_name"],
        role=row["role"],
        staff_role_id=row["staff_role_id"],
        phone=row["phone"],
        bio=row["bio"],
        disabled=bool(row["disabled"]),
        disabled_reason=row["disabled_reason"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        staff_role_name=row["staff_role_name"],
    )


# =============================================================================
# PERMISSIONS
# =============================================================================


def upsert_permission(conn: sqlite3.Connection, permission_id: str, name: str, description: str) -> bool:
    """Insert a permission if its name is new.

    Returns:
        True if inserted, False if it already existed
    """
    cursor = conn.execute(
        "INSERT OR IGNORE INTO permissions (id, name, description) VALUES (?, ?, ?)",
        (permission_id, name, description),
    )
    return cursor.rowcount > 0


def list_permissions(conn: sqlite3.Connection) -> list[PermissionRecord]:
    rows = conn.execute("SELECT * FROM permissions ORDER BY name").fetchall()
    return [PermissionRecord(**dict(row)) for row in rows]


def permission_ids_by_name(conn: sqlite3.Connection, names: list[str]) -> dict[str, str]:
    if not names:
        return {}
    placeholders = ", ".join("?" for _ in names)
    rows = conn.execute(
        f"SELECT id, name FROM permissions WHERE name IN ({placeholders})", names
    ).fetchall()
    return {row["name"]: row["id"] for row in rows}


# =============================================================================
# STAFF ROLES
# =============================================================================


def insert_staff_role(conn: sqlite3.Connection, role_id: str, name: str, description: str | None) -> None:
    """Insert a staff role.

    Raises:
        sqlite3.IntegrityError: If the name is taken
    """
    conn.execute(
        "INSERT INTO staff_roles (id, name, description) VALUES (?, ?, ?)",
        (role_id, name, description),
    )


def update_staff_role(conn: sqlite3.Connection, role_id: str, name: str, description: str | None) -> bool:
    cursor = conn.execute(
        "UPDATE staff_roles SET name = ?, description = ? WHERE id = ?",
        (name, description, role_id),
    )
    return cursor.rowcount > 0


def delete_staff_role(conn: sqlite3.Connection, role_id: str) -> bool:
    cursor = conn.execute("DELETE FROM staff_roles WHERE id = ?", (role_id,))
    return cursor.rowcount > 0


def get_staff_role(conn: sqlite3.Connection, role_id: str) -> StaffRoleRecord | None:
    row = conn.execute("SELECT * FROM staff_roles WHERE id = ?", (role_id,)).fetchone()
    if not row:
        return None
    return StaffRoleRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        permissions=role_permission_names(conn, row["id"]),
    )


def get_staff_role_by_name(conn: sqlite3.Connection, name: str) -> StaffRoleRecord | None:
    row = conn.execute("SELECT id FROM staff_roles WHERE name = ?", (name,)).fetchone()
    return get_staff_role(conn, row["id"]) if row else None


def list_staff_roles(conn: sqlite3.Connection) -> list[StaffRoleRecord]:
    rows = conn.execute("SELECT * FROM staff_roles ORDER BY name").fetchall()
    return [
        StaffRoleRecord(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            permissions=role_permission_names(conn, row["id"]),
        )
        for row in rows
    ]


def role_permission_names(conn: sqlite3.Connection, role_id: str) -> list[str]:
    rows = conn.execute(
        """
        SELECT p.name FROM staff_role_permissions rp
        JOIN permissions p ON p.id = rp.permission_id
        WHERE rp.role_id = ?
        ORDER BY p.name
        """,
        (role_id,),
    ).fetchall()
    return [row["name"] for row in rows]


def replace_role_permissions(conn: sqlite3.Connection, role_id: str, permission_ids: list[str]) -> None:
    """Replace the permission set of a role."""
    conn.execute("DELETE FROM staff_role_permissions WHERE role_id = ?", (role_id,))
    conn.executemany(
        "INSERT INTO staff_role_permissions (role_id, permission_id) VALUES (?, ?)",
        [(role_id, permission_id) for permission_id in permission_ids],
    )
