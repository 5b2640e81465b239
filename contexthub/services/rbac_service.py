# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Effective permission resolution for memberships and API tokens."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from contexthub.models import ApiToken, Membership, MembershipStatus, Role
from contexthub.rbac import (
    RoleKey,
    can_assign_role,
    expand_permissions,
    filter_permissions_by_scopes,
    get_role_level,
    normalize_scopes,
    permission_checker,
)
from contexthub.rbac.checker import CheckMode
from contexthub.services import role_service
from contexthub.services.role_service import RoleForbiddenError, RoleNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """An authenticated caller as established by the authentication layer.

    Exactly one of user_id or api_token_id identifies the caller.
    """

    tenant_id: uuid.UUID
    user_id: uuid.UUID | None = None
    api_token_id: uuid.UUID | None = None


@dataclass(frozen=True)
class AuthContext:
    """Effective authorization state for one request."""

    tenant_id: uuid.UUID
    role: str | None
    level: int
    permissions: frozenset[str]
    user_id: uuid.UUID | None = None
    membership_id: uuid.UUID | None = None
    api_token_id: uuid.UUID | None = None
    scopes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def via_token(self) -> bool:
        return self.api_token_id is not None

    def has_permission(self, required, mode: CheckMode = "all") -> bool:
        """Check one permission or a list of permissions against this context."""
        return permission_checker.has_permissions(self.permissions, required, mode)


def get_membership(
    db: Session, tenant_id: uuid.UUID, user_id: uuid.UUID
) -> Membership | None:
    """Get a user's active membership in a tenant."""
    return (
        db.query(Membership)
        .filter(
            Membership.tenant_id == tenant_id,
            Membership.user_id == user_id,
            Membership.status == MembershipStatus.ACTIVE.value,
        )
        .first()
    )


def get_membership_by_id(
    db: Session, tenant_id: uuid.UUID, membership_id: uuid.UUID
) -> Membership | None:
    """Get a membership by ID, restricted to one tenant."""
    return (
        db.query(Membership)
        .filter(Membership.id == membership_id, Membership.tenant_id == tenant_id)
        .first()
    )


def get_api_token(db: Session, tenant_id: uuid.UUID, token_id: uuid.UUID) -> ApiToken | None:
    """Get an API token by ID, restricted to one tenant."""
    return (
        db.query(ApiToken)
        .filter(ApiToken.id == token_id, ApiToken.tenant_id == tenant_id)
        .first()
    )


def get_membership_role(db: Session, membership: Membership) -> Role | None:
    """Resolve the role a membership points at."""
    return role_service.resolve_role(
        db, membership.tenant_id, role_key=membership.role, role_id=membership.role_id
    )


def get_membership_permissions(
    db: Session, membership: Membership, role: Role | None = None
) -> list[str]:
    """Get the expanded permission list for a membership.

    Role grants and the membership's direct grants are merged, anything outside
    the catalog is dropped, and the result is closed over the manage aliases.
    """
    if role is None:
        role = get_membership_role(db, membership)
    granted = membership.get_effective_permissions(role)
    return expand_permissions(permission_checker.sanitize_permissions(granted))


def get_token_role(db: Session, token: ApiToken) -> Role | None:
    """Resolve the role an API token carries."""
    return role_service.resolve_role(db, token.tenant_id, role_key=token.role)


def get_token_permissions(db: Session, token: ApiToken, role: Role | None = None) -> list[str]:
    """Get the permission list for an API token.

    The token role's expanded permissions are narrowed by the token scopes.
    The result is not expanded again, so a write-scoped token keeps a manage
    alias without regaining the delete permissions it implies.
    """
    if role is None:
        role = get_token_role(db, token)
    if role is None:
        logger.warning(f"API token {token.id} references unknown role {token.role}")
        return []
    expanded = expand_permissions(permission_checker.sanitize_permissions(role.permissions))
    return filter_permissions_by_scopes(expanded, token.scopes or [])


def build_auth_context(db: Session, principal: Principal) -> AuthContext | None:
    """Build the authorization context for an authenticated principal.

    Returns None when the membership or token cannot be found, is inactive,
    or has expired.
    """
    if principal.api_token_id is not None:
        token = get_api_token(db, principal.tenant_id, principal.api_token_id)
        if token is None or token.is_expired():
            return None
        token.last_used_at = datetime.utcnow()
        db.commit()
        role = get_token_role(db, token)
        return AuthContext(
            tenant_id=principal.tenant_id,
            role=role.key if role is not None else token.role,
            level=role.level if role is not None else 0,
            permissions=frozenset(get_token_permissions(db, token, role)),
            api_token_id=token.id,
            scopes=tuple(normalize_scopes(token.scopes or [])),
        )

    if principal.user_id is None:
        return None

    membership = get_membership(db, principal.tenant_id, principal.user_id)
    if membership is None:
        return None

    role = get_membership_role(db, membership)
    level = role.level if role is not None else get_role_level(membership.role)
    return AuthContext(
        tenant_id=principal.tenant_id,
        role=role.key if role is not None else membership.role,
        level=level,
        permissions=frozenset(get_membership_permissions(db, membership, role)),
        user_id=principal.user_id,
        membership_id=membership.id,
    )


def assign_membership_role(
    db: Session, context: AuthContext, membership: Membership, role_key: str
) -> tuple[Membership, Role]:
    """Point a membership at another role.

    Only owners may grant the owner role, nobody may grant a role above their
    own level or carrying permissions they do not hold, and members who
    outrank the actor cannot be re-assigned.

    Raises:
        RoleNotFoundError: The role key does not resolve in the tenant
        RoleForbiddenError: The hierarchy rules forbid the change
    """
    target = role_service.resolve_role(db, membership.tenant_id, role_key=role_key)
    if target is None:
        raise RoleNotFoundError("Role not found")

    if not can_assign_role(
        context.role, target.key, actor_level=context.level, target_level=target.level
    ):
        logger.warning(
            f"Role assignment denied: {context.role} cannot grant {target.key} "
            f"in tenant {membership.tenant_id}"
        )
        if target.key == RoleKey.OWNER.value:
            raise RoleForbiddenError("Only owner can assign owner role")
        raise RoleForbiddenError("Cannot assign a role above your own level")

    exceeding = sorted(
        set(expand_permissions(permission_checker.sanitize_permissions(target.permissions)))
        - context.permissions
    )
    if exceeding:
        logger.warning(
            f"Role assignment denied: {target.key} carries permissions {context.role} "
            f"does not hold: {exceeding}"
        )
        raise RoleForbiddenError("Cannot assign a role with permissions you do not hold")

    current = get_membership_role(db, membership)
    current_level = current.level if current is not None else get_role_level(membership.role)
    if current_level > context.level:
        raise RoleForbiddenError("Cannot change the role of a member who outranks you")

    membership.role = target.key
    membership.role_id = target.id
    db.commit()
    db.refresh(membership)
    logger.info(
        f"Membership {membership.id} in tenant {membership.tenant_id} now has role {target.key}"
    )
    return membership, target
