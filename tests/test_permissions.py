"""Tests for the permission catalog, staff roles and staff accounts."""

import pytest

from sharecrm.core import permissions
from sharecrm.core.errors import ConflictError, NotFoundError, ValidationError


class TestPermissionCatalog:
    """Tests for seed_permissions and list_permissions."""

    def test_seeded_once(self):
        assert permissions.seed_permissions() == 0
        names = [p.name for p in permissions.list_permissions()]
        assert sorted(names) == sorted(permissions.PERMISSIONS)


class TestStaffRoles:
    """Tests for role CRUD and permission assignment."""

    def test_create_with_permissions(self):
        role = permissions.create_staff_role("Front Desk", "Reception", ["customer_read", "create_enrollments"])

        assert role.name == "Front Desk"
        assert role.permissions == ["create_enrollments", "customer_read"]

    def test_duplicate_name_conflicts(self):
        permissions.create_staff_role("Front Desk")

        with pytest.raises(ConflictError):
            permissions.create_staff_role("Front Desk")

    def test_unknown_permission_rejected(self):
        role = permissions.create_staff_role("Front Desk")

        with pytest.raises(ValidationError, match="fly_helicopter"):
            permissions.assign_permissions(role.id, ["customer_read", "fly_helicopter"])

        assert permissions.list_staff_roles()[0].permissions == []

    def test_assign_replaces_set(self):
        role = permissions.create_staff_role("Front Desk", permissions=["customer_read"])

        updated = permissions.assign_permissions(role.id, ["report_read"])

        assert updated.permissions == ["report_read"]

    def test_update_and_delete(self):
        role = permissions.create_staff_role("Front Desk")

        renamed = permissions.update_staff_role(role.id, name="Reception")
        assert renamed.name == "Reception"

        permissions.delete_staff_role(role.id)
        assert permissions.list_staff_roles() == []
        with pytest.raises(NotFoundError):
            permissions.delete_staff_role(role.id)

    def test_super_admin_holds_everything(self):
        role = permissions.ensure_super_admin_role()

        assert role.name == permissions.SUPER_ADMIN_ROLE
        assert set(role.permissions) == set(permissions.PERMISSIONS)
        assert permissions.ensure_super_admin_role().id == role.id


class TestMembership:
    """Permission checks are plain membership of the role's list."""

    def test_has_permission(self):
        role = permissions.create_staff_role("Reports", permissions=["report_read"])
        user, _ = permissions.create_staff("Rita Reports", "rita@example.com", role.id, password="rita-pass")

        assert permissions.has_permission(user, "report_read")
        assert not permissions.has_permission(user, "roles_manage")

    def test_no_role_no_permissions(self):
        user, _ = permissions.create_staff("Nora None", "nora@example.com", None, password="nora-pass")

        assert permissions.user_permissions(user) == []
        assert not permissions.has_permission(user, "customer_read")

    def test_deleting_role_revokes_access(self):
        role = permissions.create_staff_role("Reports", permissions=["report_read"])
        user, _ = permissions.create_staff("Rita Reports", "rita@example.com", role.id, password="rita-pass")

        permissions.delete_staff_role(role.id)

        refreshed = [s for s in permissions.list_staff() if s.id == user.id][0]
        assert refreshed.staff_role_id is None
        assert not permissions.has_permission(refreshed, "report_read")


class TestStaffAccounts:
    """Tests for create_staff and update_staff."""

    def test_generated_password(self):
        user, generated = permissions.create_staff("Gus Gen", "gus@example.com", None)

        assert user.role == "admin"
        assert generated and len(generated) >= 6

    def test_unknown_role(self):
        with pytest.raises(NotFoundError):
            permissions.create_staff("Gus Gen", "gus@example.com", "missing-role")

    def test_duplicate_email(self):
        permissions.create_staff("Gus Gen", "gus@example.com", None)

        with pytest.raises(ConflictError):
            permissions.create_staff("Gus Again", "gus@example.com", None)

    def test_update_disables(self):
        user, _ = permissions.create_staff("Gus Gen", "gus@example.com", None)

        updated = permissions.update_staff(user.id, {"disabled": True, "phone": "0400 123 456"})

        assert updated.disabled is True
        assert updated.phone == "0400 123 456"
