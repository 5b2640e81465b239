# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""API dependencies for dependency injection."""

import logging
from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from contexthub.database import get_db
from contexthub.rbac import Permission
from contexthub.rbac.checker import CheckMode
from contexthub.services import rbac_service
from contexthub.services.rbac_service import AuthContext, Principal

logger = logging.getLogger(__name__)

__all__ = [
    "get_auth_context",
    "get_db",
    "get_principal",
    "require_permission",
]


def get_principal(request: Request) -> Principal:
    """Get the principal placed on the request by the authentication layer."""
    principal = getattr(request.state, "principal", None)
    if not isinstance(principal, Principal):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal


def get_auth_context(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
) -> AuthContext:
    """Resolve the caller's role and effective permissions for the tenant."""
    context = rbac_service.build_auth_context(db, principal)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Membership or API token not found, inactive or expired",
        )
    return context


def require_permission(
    permissions: str | Permission | list[str | Permission],
    mode: CheckMode = "all",
) -> Callable[..., AuthContext]:
    """Dependency for permission-based authorization.

    Args:
        permissions: One permission or a list of permissions
        mode: "all" requires every listed permission, "any" at least one
    """
    required = [permissions] if isinstance(permissions, str) else list(permissions)
    codes = [p.value if isinstance(p, Permission) else p for p in required]

    def dependency(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        if not context.has_permission(codes, mode):
            logger.info(
                f"Permission denied for role {context.role} in tenant {context.tenant_id}: "
                f"{codes} ({mode})"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {', '.join(codes)}",
            )
        return context

    return dependency
