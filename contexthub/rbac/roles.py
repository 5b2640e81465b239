# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""System role definitions and the role level hierarchy."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from .permissions import (
    ALL_PERMISSIONS,
    CatalogIntegrityError,
    Permission,
)


class RoleKey(str, Enum):
    """Keys of the system roles every tenant starts with."""

    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    AUTHOR = "author"
    VIEWER = "viewer"


ROLE_LEVELS: Mapping[str, int] = MappingProxyType({
    RoleKey.VIEWER.value: 10,
    RoleKey.AUTHOR.value: 20,
    RoleKey.EDITOR.value: 30,
    RoleKey.ADMIN.value: 40,
    RoleKey.OWNER.value: 50,
})


@dataclass(frozen=True)
class RoleDefinition:
    """A named, leveled bundle of permissions."""

    key: str
    name: str
    description: str
    level: int
    permissions: tuple[str, ...]
    is_default: bool = True
    is_system: bool = True


def _codes(*permissions: Permission) -> tuple[str, ...]:
    return tuple(p.value for p in permissions)


_P = Permission

# Product bundles, not derived from each other.
DEFAULT_ROLES: tuple[RoleDefinition, ...] = (
    RoleDefinition(
        key=RoleKey.OWNER.value,
        name="Owner",
        description="Full access to all tenant resources and configuration.",
        level=ROLE_LEVELS[RoleKey.OWNER.value],
        permissions=ALL_PERMISSIONS,
    ),
    RoleDefinition(
        key=RoleKey.ADMIN.value,
        name="Administrator",
        description="Manage tenant configuration, users, and content.",
        level=ROLE_LEVELS[RoleKey.ADMIN.value],
        permissions=_codes(
            _P.DASHBOARD_VIEW,
            _P.CONTENT_VIEW,
            _P.CONTENT_MANAGE,
            _P.MEDIA_VIEW,
            _P.MEDIA_MANAGE,
            _P.CATEGORIES_VIEW,
            _P.CATEGORIES_MANAGE,
            _P.FORMS_VIEW,
            _P.FORMS_MANAGE,
            _P.PLACEMENTS_VIEW,
            _P.PLACEMENTS_MANAGE,
            _P.MENUS_VIEW,
            _P.MENUS_MANAGE,
            _P.ANALYTICS_VIEW,
            _P.USERS_VIEW,
            _P.USERS_MANAGE,
            _P.USERS_INVITE,
            _P.USERS_ASSIGN_ROLE,
            _P.ROLES_VIEW,
            _P.ROLES_MANAGE,
            _P.PROFILE_UPDATE,
            _P.TENANTS_VIEW,
            _P.TENANTS_MANAGE,
            _P.SETTINGS_MANAGE,
        ),
    ),
    RoleDefinition(
        key=RoleKey.EDITOR.value,
        name="Editor",
        description="Create and manage most tenant content.",
        level=ROLE_LEVELS[RoleKey.EDITOR.value],
        permissions=_codes(
            _P.DASHBOARD_VIEW,
            _P.CONTENT_VIEW,
            _P.CONTENT_MANAGE,
            _P.MEDIA_VIEW,
            _P.MEDIA_MANAGE,
            _P.CATEGORIES_VIEW,
            _P.CATEGORIES_MANAGE,
            _P.FORMS_VIEW,
            _P.FORMS_MANAGE,
            _P.PLACEMENTS_VIEW,
            _P.PLACEMENTS_MANAGE,
            _P.MENUS_VIEW,
            _P.MENUS_MANAGE,
            _P.ANALYTICS_VIEW,
            _P.PROFILE_UPDATE,
        ),
    ),
    RoleDefinition(
        key=RoleKey.AUTHOR.value,
        name="Author",
        description="Edit existing content and upload media.",
        level=ROLE_LEVELS[RoleKey.AUTHOR.value],
        permissions=_codes(
            _P.DASHBOARD_VIEW,
            _P.CONTENT_VIEW,
            _P.CONTENT_MANAGE,
            _P.MEDIA_VIEW,
            _P.MEDIA_MANAGE,
            _P.ANALYTICS_VIEW,
            _P.PROFILE_UPDATE,
        ),
    ),
    RoleDefinition(
        key=RoleKey.VIEWER.value,
        name="Viewer",
        description="Read-only access to tenant content.",
        level=ROLE_LEVELS[RoleKey.VIEWER.value],
        permissions=_codes(
            _P.DASHBOARD_VIEW,
            _P.CONTENT_VIEW,
            _P.MEDIA_VIEW,
            _P.CATEGORIES_VIEW,
            _P.FORMS_VIEW,
            _P.PLACEMENTS_VIEW,
            _P.MENUS_VIEW,
            _P.ANALYTICS_VIEW,
            _P.PROFILE_UPDATE,
        ),
    ),
)

SYSTEM_ROLE_KEYS: frozenset[str] = frozenset(k.value for k in RoleKey)


def _role_key(role_key: RoleKey | str) -> str:
    if isinstance(role_key, Enum):
        return role_key.value
    return str(role_key)


def get_role_level(role_key: RoleKey | str | None) -> int:
    """Return the level of a system role key; unknown keys are level 0."""
    if not role_key:
        return 0
    return ROLE_LEVELS.get(_role_key(role_key), 0)


def get_default_role(role_key: RoleKey | str | None) -> RoleDefinition | None:
    """Look up a system role definition by key."""
    if not role_key:
        return None
    key = _role_key(role_key)
    for role in DEFAULT_ROLES:
        if role.key == key:
            return role
    return None


def has_role_level(actor_role: RoleKey | str | None, required_role: RoleKey | str) -> bool:
    """Check that an actor's role is at least as privileged as another role."""
    return get_role_level(actor_role) >= get_role_level(required_role)


def can_assign_role(
    actor_role: RoleKey | str | None,
    target_role: RoleKey | str | None,
    actor_level: int | None = None,
    target_level: int | None = None,
) -> bool:
    """Decide whether an actor may hand out a role.

    Only owners may grant the owner role. Otherwise the actor's level must be
    at least the target role's level. Explicit levels override the system
    level map, which lets tenant custom roles take part in the comparison.
    """
    if not target_role:
        return False
    actor_key = _role_key(actor_role) if actor_role else ""
    if _role_key(target_role) == RoleKey.OWNER.value:
        return actor_key == RoleKey.OWNER.value

    if actor_level is None:
        actor_level = get_role_level(actor_key)
    if target_level is None:
        target_level = get_role_level(target_role)
    return actor_level >= target_level


def verify_roles() -> None:
    """Check the default roles against the catalog and level map."""
    catalog = set(ALL_PERMISSIONS)
    previous_level = None
    for role in DEFAULT_ROLES:
        if ROLE_LEVELS.get(role.key) != role.level:
            raise CatalogIntegrityError(f"Role {role.key} level does not match ROLE_LEVELS")
        if previous_level is not None and role.level >= previous_level:
            raise CatalogIntegrityError("DEFAULT_ROLES must be ordered by decreasing level")
        previous_level = role.level
        unknown = set(role.permissions) - catalog
        if unknown:
            raise CatalogIntegrityError(
                f"Role {role.key} references unknown permissions: {sorted(unknown)}"
            )

    owner = get_default_role(RoleKey.OWNER)
    if owner is None or set(owner.permissions) != catalog:
        raise CatalogIntegrityError("Owner role must carry the whole permission catalog")


verify_roles()
