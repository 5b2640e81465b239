# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Permission catalog, manage-alias expansion and API token scope filtering.

Permissions follow the `resource:action` convention. The catalog is closed:
every identifier a role, membership or token can carry is a member of
:class:`Permission`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType


class CatalogIntegrityError(RuntimeError):
    """Static RBAC tables reference something outside the catalog."""


class Permission(str, Enum):
    """All permissions known to the tenant admin."""

    DASHBOARD_VIEW = "dashboard:view"

    # User management
    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_UPDATE = "users:update"
    USERS_DELETE = "users:delete"
    USERS_MANAGE = "users:manage"
    USERS_INVITE = "users:invite"
    USERS_ASSIGN_ROLE = "users:assign-role"

    # Roles
    ROLES_VIEW = "roles:view"
    ROLES_CREATE = "roles:create"
    ROLES_UPDATE = "roles:update"
    ROLES_DELETE = "roles:delete"
    ROLES_MANAGE = "roles:manage"

    PROFILE_UPDATE = "profile:update"

    # Tenants
    TENANTS_VIEW = "tenants:view"
    TENANTS_CREATE = "tenants:create"
    TENANTS_UPDATE = "tenants:update"
    TENANTS_DELETE = "tenants:delete"
    TENANTS_MANAGE = "tenants:manage"

    # Content
    CONTENT_VIEW = "content:view"
    CONTENT_CREATE = "content:create"
    CONTENT_UPDATE = "content:update"
    CONTENT_DELETE = "content:delete"
    CONTENT_MANAGE = "content:manage"

    # Media library
    MEDIA_VIEW = "media:view"
    MEDIA_CREATE = "media:create"
    MEDIA_UPDATE = "media:update"
    MEDIA_DELETE = "media:delete"
    MEDIA_MANAGE = "media:manage"

    # Categories
    CATEGORIES_VIEW = "categories:view"
    CATEGORIES_CREATE = "categories:create"
    CATEGORIES_UPDATE = "categories:update"
    CATEGORIES_DELETE = "categories:delete"
    CATEGORIES_MANAGE = "categories:manage"

    # Collections
    COLLECTIONS_VIEW = "collections:view"
    COLLECTIONS_CREATE = "collections:create"
    COLLECTIONS_UPDATE = "collections:update"
    COLLECTIONS_DELETE = "collections:delete"
    COLLECTIONS_MANAGE = "collections:manage"

    # Forms
    FORMS_VIEW = "forms:view"
    FORMS_CREATE = "forms:create"
    FORMS_UPDATE = "forms:update"
    FORMS_DELETE = "forms:delete"
    FORMS_MANAGE = "forms:manage"

    # Placements
    PLACEMENTS_VIEW = "placements:view"
    PLACEMENTS_CREATE = "placements:create"
    PLACEMENTS_UPDATE = "placements:update"
    PLACEMENTS_DELETE = "placements:delete"
    PLACEMENTS_MANAGE = "placements:manage"

    # Menus
    MENUS_VIEW = "menus:view"
    MENUS_CREATE = "menus:create"
    MENUS_UPDATE = "menus:update"
    MENUS_DELETE = "menus:delete"
    MENUS_MANAGE = "menus:manage"

    ANALYTICS_VIEW = "analytics:view"

    # Tenant settings
    SETTINGS_VIEW = "settings:view"
    SETTINGS_UPDATE = "settings:update"
    SETTINGS_MANAGE = "settings:manage"


class Scope(str, Enum):
    """Coarse capabilities carried by API tokens."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"


ALL_PERMISSIONS: tuple[str, ...] = tuple(p.value for p in Permission)

_P = Permission


def _crud(view: Permission, create: Permission, update: Permission, delete: Permission):
    return (view, create, update, delete)


MANAGE_IMPLIED_PERMISSIONS: Mapping[Permission, tuple[Permission, ...]] = MappingProxyType({
    _P.USERS_MANAGE: (
        _P.USERS_VIEW,
        _P.USERS_CREATE,
        _P.USERS_UPDATE,
        _P.USERS_DELETE,
        _P.USERS_INVITE,
        _P.USERS_ASSIGN_ROLE,
    ),
    _P.ROLES_MANAGE: _crud(_P.ROLES_VIEW, _P.ROLES_CREATE, _P.ROLES_UPDATE, _P.ROLES_DELETE),
    _P.TENANTS_MANAGE: _crud(
        _P.TENANTS_VIEW, _P.TENANTS_CREATE, _P.TENANTS_UPDATE, _P.TENANTS_DELETE
    ),
    _P.CONTENT_MANAGE: _crud(
        _P.CONTENT_VIEW, _P.CONTENT_CREATE, _P.CONTENT_UPDATE, _P.CONTENT_DELETE
    ),
    _P.MEDIA_MANAGE: _crud(_P.MEDIA_VIEW, _P.MEDIA_CREATE, _P.MEDIA_UPDATE, _P.MEDIA_DELETE),
    _P.CATEGORIES_MANAGE: _crud(
        _P.CATEGORIES_VIEW, _P.CATEGORIES_CREATE, _P.CATEGORIES_UPDATE, _P.CATEGORIES_DELETE
    ),
    _P.COLLECTIONS_MANAGE: _crud(
        _P.COLLECTIONS_VIEW,
        _P.COLLECTIONS_CREATE,
        _P.COLLECTIONS_UPDATE,
        _P.COLLECTIONS_DELETE,
    ),
    _P.FORMS_MANAGE: _crud(_P.FORMS_VIEW, _P.FORMS_CREATE, _P.FORMS_UPDATE, _P.FORMS_DELETE),
    _P.PLACEMENTS_MANAGE: _crud(
        _P.PLACEMENTS_VIEW, _P.PLACEMENTS_CREATE, _P.PLACEMENTS_UPDATE, _P.PLACEMENTS_DELETE
    ),
    _P.MENUS_MANAGE: _crud(_P.MENUS_VIEW, _P.MENUS_CREATE, _P.MENUS_UPDATE, _P.MENUS_DELETE),
    _P.SETTINGS_MANAGE: (_P.SETTINGS_VIEW, _P.SETTINGS_UPDATE),
})

# Permission groups (for UI rendering). Manage aliases sit at the end of
# their resource's group.
PERMISSION_GROUPS: Mapping[str, tuple[Permission, ...]] = MappingProxyType({
    "USERS": (*MANAGE_IMPLIED_PERMISSIONS[_P.USERS_MANAGE], _P.USERS_MANAGE),
    "ROLES": (*MANAGE_IMPLIED_PERMISSIONS[_P.ROLES_MANAGE], _P.ROLES_MANAGE),
    "PROFILE": (_P.PROFILE_UPDATE,),
    "TENANTS": (*MANAGE_IMPLIED_PERMISSIONS[_P.TENANTS_MANAGE], _P.TENANTS_MANAGE),
    "CONTENT": (*MANAGE_IMPLIED_PERMISSIONS[_P.CONTENT_MANAGE], _P.CONTENT_MANAGE),
    "MEDIA": (*MANAGE_IMPLIED_PERMISSIONS[_P.MEDIA_MANAGE], _P.MEDIA_MANAGE),
    "CATEGORIES": (*MANAGE_IMPLIED_PERMISSIONS[_P.CATEGORIES_MANAGE], _P.CATEGORIES_MANAGE),
    "COLLECTIONS": (
        *MANAGE_IMPLIED_PERMISSIONS[_P.COLLECTIONS_MANAGE],
        _P.COLLECTIONS_MANAGE,
    ),
    "FORMS": (*MANAGE_IMPLIED_PERMISSIONS[_P.FORMS_MANAGE], _P.FORMS_MANAGE),
    "PLACEMENTS": (*MANAGE_IMPLIED_PERMISSIONS[_P.PLACEMENTS_MANAGE], _P.PLACEMENTS_MANAGE),
    "MENUS": (*MANAGE_IMPLIED_PERMISSIONS[_P.MENUS_MANAGE], _P.MENUS_MANAGE),
    "ANALYTICS": (_P.ANALYTICS_VIEW,),
    "SETTINGS": (*MANAGE_IMPLIED_PERMISSIONS[_P.SETTINGS_MANAGE], _P.SETTINGS_MANAGE),
    "DASHBOARD": (_P.DASHBOARD_VIEW,),
})

# Plain-string view of the implication table, used by the expander.
_MANAGE_IMPLIED_CODES: tuple[tuple[str, tuple[str, ...]], ...] = tuple(
    (alias.value, tuple(p.value for p in implied))
    for alias, implied in MANAGE_IMPLIED_PERMISSIONS.items()
)

_VIEW_SCOPES = frozenset({Scope.READ.value, Scope.WRITE.value, Scope.DELETE.value})
_WRITE_ACTIONS = frozenset({"create", "update", "invite", "assign-role"})


def permission_code(permission: Permission | str) -> str:
    """Return the plain string identifier for a permission or enum member."""
    if isinstance(permission, Enum):
        return permission.value
    return str(permission)


def permission_resource(permission: Permission | str) -> str:
    """Return the resource part (`users` for `users:view`)."""
    resource, _, _ = permission_code(permission).partition(":")
    return resource


def permission_action(permission: Permission | str) -> str:
    """Return the action part (`view` for `users:view`), or "" when absent."""
    _, _, action = permission_code(permission).partition(":")
    return action


def expand_permissions(permissions: Iterable[Permission | str] | None = None) -> list[str]:
    """Close a permission set over the manage aliases.

    Every manage alias present contributes the permissions it implies, and
    any alias whose implied permissions are all present is added. Codes that
    are not in the catalog are passed through untouched.

    Args:
        permissions: Granted permission codes (enum members or strings)

    Returns:
        Deduplicated list of codes, input order first
    """
    expanded: dict[str, None] = {}
    for permission in permissions or ():
        if permission:
            expanded[permission_code(permission)] = None

    for alias, implied in _MANAGE_IMPLIED_CODES:
        if alias in expanded:
            for code in implied:
                expanded.setdefault(code, None)

    for alias, implied in _MANAGE_IMPLIED_CODES:
        if alias not in expanded and all(code in expanded for code in implied):
            expanded[alias] = None

    return list(expanded)


def normalize_scopes(scopes: Iterable[Scope | str | None] | None = None) -> list[str]:
    """Trim, lower-case and deduplicate scope strings, dropping empty ones."""
    normalized: dict[str, None] = {}
    for scope in scopes or ():
        value = permission_code(scope or "").strip().lower()
        if value:
            normalized[value] = None
    return list(normalized)


def scope_allows_permission(permission: Permission | str, scope_set: Iterable[str]) -> bool:
    """Decide whether a set of normalized scopes covers one permission.

    `view` is granted by any scope, `delete` needs the delete scope, and
    everything else (including `manage` and unrecognized actions) needs write.
    A permission without an action part is never granted.
    """
    scopes = scope_set if isinstance(scope_set, (set, frozenset)) else set(scope_set)
    action = permission_action(permission or "")

    if not action:
        return False

    if action == "view":
        return not _VIEW_SCOPES.isdisjoint(scopes)

    if action in _WRITE_ACTIONS:
        return Scope.WRITE.value in scopes

    if action == "delete":
        return Scope.DELETE.value in scopes

    # manage only needs write, even though it implies delete when expanded
    if action == "manage":
        return Scope.WRITE.value in scopes

    return Scope.WRITE.value in scopes


def filter_permissions_by_scopes(
    permissions: Iterable[Permission | str] | None = None,
    scopes: Iterable[Scope | str | None] | None = None,
) -> list[str]:
    """Narrow a permission list to what a token's scopes authorize.

    No scopes means no access. The result keeps the input order and is always
    a subset of the input.
    """
    scope_set = frozenset(normalize_scopes(scopes))
    if not scope_set:
        return []

    return [
        permission_code(permission)
        for permission in permissions or ()
        if permission and scope_allows_permission(permission, scope_set)
    ]


def verify_catalog() -> None:
    """Check the static tables against the catalog.

    Raises:
        CatalogIntegrityError: If a table references an unknown permission,
            an alias implies another resource's permission, or a permission
            is not in exactly one group
    """
    catalog = set(ALL_PERMISSIONS)

    for alias, implied in MANAGE_IMPLIED_PERMISSIONS.items():
        if permission_code(alias) not in catalog:
            raise CatalogIntegrityError(f"Unknown manage alias: {alias!r}")
        if permission_action(alias) != "manage":
            raise CatalogIntegrityError(f"Not a manage alias: {permission_code(alias)}")
        alias_code = permission_code(alias)
        resource = permission_resource(alias)
        for permission in implied:
            code = permission_code(permission)
            if code not in catalog:
                raise CatalogIntegrityError(f"{alias_code} implies unknown permission {code}")
            if permission_resource(code) != resource:
                raise CatalogIntegrityError(f"{alias_code} implies foreign permission {code}")

    seen: dict[str, str] = {}
    for group, members in PERMISSION_GROUPS.items():
        for permission in members:
            code = permission_code(permission)
            if code not in catalog:
                raise CatalogIntegrityError(f"Group {group} lists unknown permission {code}")
            if code in seen:
                raise CatalogIntegrityError(
                    f"Permission {code} is in both {seen[code]} and {group}"
                )
            seen[code] = group

    ungrouped = catalog - seen.keys()
    if ungrouped:
        raise CatalogIntegrityError(f"Permissions without a group: {sorted(ungrouped)}")


verify_catalog()
