# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Role-based access control core: catalog, expansion, scopes and roles."""

from contexthub.rbac.checker import PermissionChecker, permission_checker
from contexthub.rbac.permissions import (
    ALL_PERMISSIONS,
    MANAGE_IMPLIED_PERMISSIONS,
    PERMISSION_GROUPS,
    CatalogIntegrityError,
    Permission,
    Scope,
    expand_permissions,
    filter_permissions_by_scopes,
    normalize_scopes,
    scope_allows_permission,
)
from contexthub.rbac.roles import (
    DEFAULT_ROLES,
    ROLE_LEVELS,
    SYSTEM_ROLE_KEYS,
    RoleDefinition,
    RoleKey,
    can_assign_role,
    get_default_role,
    get_role_level,
    has_role_level,
)

__all__ = [
    "ALL_PERMISSIONS",
    "CatalogIntegrityError",
    "DEFAULT_ROLES",
    "MANAGE_IMPLIED_PERMISSIONS",
    "PERMISSION_GROUPS",
    "Permission",
    "PermissionChecker",
    "ROLE_LEVELS",
    "RoleDefinition",
    "RoleKey",
    "SYSTEM_ROLE_KEYS",
    "Scope",
    "can_assign_role",
    "expand_permissions",
    "filter_permissions_by_scopes",
    "get_default_role",
    "get_role_level",
    "has_role_level",
    "normalize_scopes",
    "permission_checker",
    "scope_allows_permission",
]
