# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tests for rbac_service."""

import uuid
from datetime import datetime, timedelta

import pytest

from contexthub.models import ApiToken, MembershipStatus, Role
from contexthub.rbac import ALL_PERMISSIONS, expand_permissions
from contexthub.schemas.rbac import RoleCreateSchema
from contexthub.services import rbac_service, role_service
from contexthub.services.rbac_service import Principal
from contexthub.services.role_service import RoleForbiddenError, RoleNotFoundError


def context_for(db_session, membership):
    """Helper to build the auth context of a membership's user."""
    return rbac_service.build_auth_context(
        db_session, Principal(tenant_id=membership.tenant_id, user_id=membership.user_id)
    )


def test_membership_permissions_expand_role(db_session, system_roles, make_membership):
    membership = make_membership("author")
    permissions = rbac_service.get_membership_permissions(db_session, membership)

    assert "content:manage" in permissions
    assert "content:delete" in permissions
    assert "media:create" in permissions
    assert "users:view" not in permissions


def test_membership_direct_grants_are_merged(db_session, system_roles, make_membership):
    membership = make_membership(
        "viewer", permissions=["users:view", "bogus:permission", " users:invite "]
    )
    permissions = rbac_service.get_membership_permissions(db_session, membership)

    assert "users:view" in permissions
    assert "users:invite" in permissions
    assert "bogus:permission" not in permissions
    assert "dashboard:view" in permissions


def test_owner_membership_has_whole_catalog(db_session, system_roles, make_membership):
    membership = make_membership("owner")
    permissions = rbac_service.get_membership_permissions(db_session, membership)
    assert sorted(permissions) == sorted(expand_permissions(ALL_PERMISSIONS))


def test_custom_role_membership(db_session, tenant_id, system_roles, make_membership):
    role = role_service.create_role(
        db_session,
        tenant_id,
        RoleCreateSchema(name="Menu Keeper", level=15, permissions=["menus:manage"]),
    )
    membership = make_membership("menu-keeper")

    context = context_for(db_session, membership)

    assert context.role == "menu-keeper"
    assert context.level == 15
    assert role.key == context.role
    assert "menus:delete" in context.permissions


def test_unknown_role_falls_back_to_direct_grants(db_session, system_roles, make_membership):
    membership = make_membership("ghost", permissions=["content:view"])

    context = context_for(db_session, membership)

    assert context.role == "ghost"
    assert context.level == 0
    assert context.permissions == frozenset({"content:view"})


def test_build_context_for_member(db_session, system_roles, make_membership):
    membership = make_membership("admin")

    context = context_for(db_session, membership)

    assert context.role == "admin"
    assert context.level == 40
    assert context.membership_id == membership.id
    assert context.via_token is False
    assert context.scopes == ()
    assert context.has_permission("users:assign-role")
    assert context.has_permission(["tenants:delete", "users:view"])
    assert not context.has_permission("billing:manage")


def test_build_context_unknown_user(db_session, tenant_id, system_roles):
    principal = Principal(tenant_id=tenant_id, user_id=uuid.uuid4())
    assert rbac_service.build_auth_context(db_session, principal) is None


def test_build_context_other_tenant(db_session, system_roles, make_membership):
    membership = make_membership("admin")
    principal = Principal(tenant_id=uuid.uuid4(), user_id=membership.user_id)
    assert rbac_service.build_auth_context(db_session, principal) is None


def test_build_context_pending_membership(db_session, system_roles, make_membership):
    membership = make_membership("admin", status=MembershipStatus.PENDING.value)
    assert membership.invited_at is not None
    assert context_for(db_session, membership) is None


def test_build_context_without_identity(db_session, tenant_id):
    assert rbac_service.build_auth_context(db_session, Principal(tenant_id=tenant_id)) is None


def test_token_permissions_filtered_by_scope(db_session, system_roles, make_token):
    token = make_token("editor", ["write"])
    permissions = rbac_service.get_token_permissions(db_session, token)

    assert "content:view" in permissions
    assert "content:manage" in permissions
    assert "content:create" in permissions
    assert "content:delete" not in permissions
    assert "media:delete" not in permissions


def test_read_scoped_token_only_views(db_session, system_roles, make_token):
    token = make_token("owner", ["read"])
    permissions = rbac_service.get_token_permissions(db_session, token)
    assert permissions
    assert all(p.endswith(":view") for p in permissions)


def test_token_without_scopes_has_no_permissions(db_session, system_roles, make_token):
    token = make_token("owner", [])
    assert rbac_service.get_token_permissions(db_session, token) == []


def test_token_with_unknown_role(db_session, system_roles, make_token):
    token = make_token("ghost", ["read", "write", "delete"])
    assert rbac_service.get_token_permissions(db_session, token) == []


def test_build_context_for_token(db_session, system_roles, make_token):
    token = make_token("admin", [" Read ", "write"])

    context = rbac_service.build_auth_context(
        db_session, Principal(tenant_id=token.tenant_id, api_token_id=token.id)
    )

    assert context.via_token is True
    assert context.role == "admin"
    assert context.level == 40
    assert context.scopes == ("read", "write")
    assert "users:assign-role" in context.permissions
    assert "users:delete" not in context.permissions
    db_session.refresh(token)
    assert token.last_used_at is not None


def test_build_context_expired_token(db_session, system_roles, make_token):
    token = make_token(
        "admin", ["read"], expires_at=datetime.utcnow() - timedelta(hours=1)
    )
    principal = Principal(tenant_id=token.tenant_id, api_token_id=token.id)
    assert rbac_service.build_auth_context(db_session, principal) is None


def test_token_is_expired():
    token = ApiToken(expires_at=datetime(2025, 1, 1))
    assert token.is_expired(now=datetime(2025, 1, 2)) is True
    assert token.is_expired(now=datetime(2024, 12, 31)) is False
    assert ApiToken().is_expired() is False


def test_assign_role(db_session, system_roles, make_membership):
    actor = context_for(db_session, make_membership("admin"))
    member = make_membership("viewer")

    membership, role = rbac_service.assign_membership_role(db_session, actor, member, "Editor")

    assert role.key == "editor"
    assert membership.role == "editor"
    assert membership.role_id == system_roles["editor"].id


def test_assign_same_level(db_session, system_roles, make_membership):
    actor = context_for(db_session, make_membership("admin"))
    member = make_membership("viewer")
    membership, _ = rbac_service.assign_membership_role(db_session, actor, member, "admin")
    assert membership.role == "admin"


def test_only_owner_assigns_owner(db_session, system_roles, make_membership):
    admin = context_for(db_session, make_membership("admin"))
    member = make_membership("editor")

    with pytest.raises(RoleForbiddenError, match="Only owner can assign owner role"):
        rbac_service.assign_membership_role(db_session, admin, member, "owner")

    owner = context_for(db_session, make_membership("owner"))
    membership, _ = rbac_service.assign_membership_role(db_session, owner, member, "owner")
    assert membership.role == "owner"


def test_cannot_assign_above_own_level(db_session, system_roles, make_membership):
    actor = context_for(db_session, make_membership("editor"))
    member = make_membership("viewer")
    with pytest.raises(RoleForbiddenError, match="above your own level"):
        rbac_service.assign_membership_role(db_session, actor, member, "admin")


def test_cannot_demote_higher_member(db_session, system_roles, make_membership):
    actor = context_for(db_session, make_membership("admin"))
    owner = make_membership("owner")
    with pytest.raises(RoleForbiddenError, match="outranks you"):
        rbac_service.assign_membership_role(db_session, actor, owner, "viewer")
    db_session.refresh(owner)
    assert owner.role == "owner"


def test_assign_unknown_role(db_session, system_roles, make_membership):
    actor = context_for(db_session, make_membership("owner"))
    member = make_membership("viewer")
    with pytest.raises(RoleNotFoundError):
        rbac_service.assign_membership_role(db_session, actor, member, "ghost")


def test_cannot_assign_role_with_unheld_permissions(
    db_session, tenant_id, system_roles, make_membership
):
    role_service.create_role(
        db_session,
        tenant_id,
        RoleCreateSchema(name="Super", level=40, permissions=["collections:manage"]),
    )
    own = make_membership("admin")
    actor = context_for(db_session, own)

    with pytest.raises(RoleForbiddenError, match="permissions you do not hold"):
        rbac_service.assign_membership_role(db_session, actor, own, "super")

    db_session.refresh(own)
    assert own.role == "admin"


def test_assign_custom_role_within_own_permissions(
    db_session, tenant_id, system_roles, make_membership
):
    role_service.create_role(
        db_session,
        tenant_id,
        RoleCreateSchema(name="Menu Keeper", level=15, permissions=["menus:manage"]),
    )
    actor = context_for(db_session, make_membership("editor"))
    member = make_membership("viewer")

    membership, role = rbac_service.assign_membership_role(
        db_session, actor, member, "menu-keeper"
    )

    assert membership.role_id == role.id
    assert role.level == 15


def test_token_with_custom_role_uses_role_level(
    db_session, tenant_id, system_roles, make_token
):
    role_service.create_role(
        db_session,
        tenant_id,
        RoleCreateSchema(name="Menu Keeper", level=15, permissions=["menus:manage"]),
    )
    token = make_token("menu-keeper", ["read", "write"])

    context = rbac_service.build_auth_context(
        db_session, Principal(tenant_id=token.tenant_id, api_token_id=token.id)
    )

    assert context.role == "menu-keeper"
    assert context.level == 15
    assert "menus:manage" in context.permissions
    assert "menus:delete" not in context.permissions


def test_token_with_unknown_role_has_no_level(db_session, system_roles, make_token):
    token = make_token("ghost", ["read"])
    context = rbac_service.build_auth_context(
        db_session, Principal(tenant_id=token.tenant_id, api_token_id=token.id)
    )
    assert context.level == 0
    assert context.permissions == frozenset()


def test_token_role_column_fits_any_role_key():
    assert ApiToken.__table__.c.role.type.length == Role.__table__.c.key.type.length


def test_token_with_long_custom_role_key(db_session, tenant_id, system_roles, make_token):
    role = role_service.create_role(
        db_session,
        tenant_id,
        RoleCreateSchema(name="Regional Content Coordinator", level=15),
    )
    token = make_token(role.key, ["read"])
    db_session.refresh(token)
    assert token.role == "regional-content-coordinator"
    assert rbac_service.get_token_role(db_session, token).id == role.id
