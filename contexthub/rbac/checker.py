# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Validation and permission checks against the catalog."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from .permissions import (
    ALL_PERMISSIONS,
    MANAGE_IMPLIED_PERMISSIONS,
    PERMISSION_GROUPS,
    Permission,
    permission_code,
)

CheckMode = Literal["all", "any"]

_GROUP_BY_CODE: dict[str, str] = {
    p.value: group for group, members in PERMISSION_GROUPS.items() for p in members
}
_MANAGE_CODES = frozenset(alias.value for alias in MANAGE_IMPLIED_PERMISSIONS)


class PermissionChecker:
    """Validates permission codes and evaluates permission requirements."""

    def is_permission_valid(self, permission_str: str) -> bool:
        """Check if a permission string is a valid Permission enum value.

        Args:
            permission_str: Permission string to validate

        Returns:
            True if valid, False otherwise
        """
        try:
            Permission(permission_str)
            return True
        except ValueError:
            return False

    def parse_permissions(
        self,
        permission_strings: Iterable[str],
    ) -> tuple[set[Permission], list[str]]:
        """Parse a list of permission strings into Permission enums.

        Args:
            permission_strings: List of permission strings

        Returns:
            Tuple of (valid permissions set, list of invalid permission strings)
        """
        valid: set[Permission] = set()
        invalid: list[str] = []

        for perm_str in permission_strings:
            try:
                valid.add(Permission(perm_str))
            except ValueError:
                invalid.append(perm_str)

        return valid, invalid

    def sanitize_permissions(self, permission_strings: Iterable[str] | None) -> list[str]:
        """Keep catalog permissions only, deduplicated, in input order."""
        catalog = set(ALL_PERMISSIONS)
        unique: dict[str, None] = {}
        for perm_str in permission_strings or ():
            code = permission_code(perm_str).strip() if perm_str else ""
            if code in catalog:
                unique[code] = None
        return list(unique)

    def has_permissions(
        self,
        granted: Iterable[str],
        required: str | Permission | Iterable[str | Permission],
        mode: CheckMode = "all",
    ) -> bool:
        """Evaluate a permission requirement against a granted set.

        Args:
            granted: Permission codes the caller holds (already expanded)
            required: One permission or a list of permissions
            mode: "all" requires every permission, "any" requires at least one

        Returns:
            True if the requirement is met; an empty requirement always is
        """
        if isinstance(required, str):
            required_codes = [permission_code(required)]
        else:
            required_codes = [permission_code(p) for p in required]
        if not required_codes:
            return True

        granted_set = granted if isinstance(granted, (set, frozenset)) else set(granted)
        if mode == "any":
            return any(code in granted_set for code in required_codes)
        return all(code in granted_set for code in required_codes)

    def check_permissions_subset(
        self,
        required: Iterable[str],
        granted: Iterable[str],
    ) -> tuple[bool, set[str]]:
        """Check if all required permissions are in the granted set.

        Args:
            required: Set of required permissions
            granted: Set of granted permissions

        Returns:
            Tuple of (all_granted, missing_permissions)
        """
        missing = {permission_code(p) for p in required} - {
            permission_code(p) for p in granted
        }
        return len(missing) == 0, missing

    def group_for(self, permission: str | Permission) -> str | None:
        """Return the UI group a permission belongs to."""
        return _GROUP_BY_CODE.get(permission_code(permission))

    def format_permissions_for_display(
        self,
        permissions: Iterable[str | Permission],
    ) -> list[dict[str, str | bool | None]]:
        """Format permissions for UI display.

        Args:
            permissions: Permission codes

        Returns:
            List of dicts with 'value', 'label', 'group' and 'is_manage' keys
        """
        result = []
        for code in sorted({permission_code(p) for p in permissions}):
            result.append({
                "value": code,
                "label": code.replace(":", " ").replace("-", " ").title(),
                "group": self.group_for(code),
                "is_manage": code in _MANAGE_CODES,
            })
        return result


permission_checker = PermissionChecker()
