import uuid

import pytest

from compliance.utils.role_permissions import (
    ROLE_HIERARCHY,
    INVITABLE_ROLES,
    RoleEnum,
    can_manage_role,
    get_assignable_roles,
    get_resolved_permissions,
    has_permission,
    role_allows_manage,
    validate_role,
)


class TestRolePermissions:
    """Unit tests for the static role to permission mapping."""

    def test_owner_wildcard_grants_everything(self):
        for perm in ("billing:write", "deadlines:delete", "settings:write", "audit:read"):
            assert has_permission("owner", perm)

    def test_admin_category_wildcards(self):
        assert has_permission("admin", "deadlines:delete")
        assert has_permission("admin", "documents:update")
        assert has_permission("admin", "alerts:manage")
        assert not has_permission("admin", "billing:read")
        assert not has_permission("admin", "billing:write")

    def test_manager_cannot_delete_or_invite(self):
        assert has_permission("manager", "deadlines:assign")
        assert not has_permission("manager", "deadlines:delete")
        assert not has_permission("manager", "users:invite")
        assert not has_permission("manager", "documents:delete")

    def test_viewer_is_read_only(self):
        assert has_permission("viewer", "deadlines:read")
        assert has_permission("viewer", "documents:read")
        assert not has_permission("viewer", "deadlines:create")
        assert not has_permission("viewer", "documents:create")

    def test_member_completes_own_only(self):
        assert not has_permission("member", "deadlines:complete")
        assert has_permission("member", "deadlines:complete:own")

    def test_own_permission_via_base_grant_requires_ownership(self):
        me = uuid.uuid4()
        other = uuid.uuid4()
        assert has_permission("manager", "deadlines:complete:own", user_id=me, resource_owner_id=me)
        assert not has_permission("manager", "alerts:read:own", user_id=me, resource_owner_id=other)

    def test_unknown_role_has_nothing(self):
        assert not has_permission("editor", "deadlines:read")
        assert not has_permission(None, "deadlines:read")

    def test_role_allows_manage(self):
        assert role_allows_manage("owner")
        assert role_allows_manage("admin")
        assert not role_allows_manage("manager")


class TestRoleManagement:
    def test_owner_manages_all_but_owner(self):
        assert get_assignable_roles("owner") == ["admin", "manager", "member", "viewer"]
        assert not can_manage_role("owner", "owner")

    def test_admin_manages_strictly_lower(self):
        assert get_assignable_roles("admin") == ["manager", "member", "viewer"]
        assert not can_manage_role("admin", "admin")

    def test_viewer_manages_nobody(self):
        assert get_assignable_roles("viewer") == []

    def test_invalid_roles_never_manage(self):
        assert not can_manage_role("superuser", "viewer")
        assert not can_manage_role("owner", "superuser")

    def test_invitable_roles_exclude_owner(self):
        assert "owner" not in INVITABLE_ROLES
        assert set(INVITABLE_ROLES) == set(ROLE_HIERARCHY) - {"owner"}

    def test_validate_role(self):
        for role in RoleEnum:
            validate_role(role.value)
        with pytest.raises(ValueError, match="Invalid role 'editor'"):
            validate_role("editor")

    def test_resolved_permissions_expand_wildcards(self):
        admin = get_resolved_permissions("admin")
        assert "deadlines:complete:own" in admin
        assert "billing:read" not in admin
        assert get_resolved_permissions("nobody") == []
        assert len(get_resolved_permissions("owner")) > len(admin)
