# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Role lookup and tenant custom role management."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from slugify import slugify
from sqlalchemy.orm import Session

from contexthub.models import Membership, Role
from contexthub.rbac import expand_permissions, permission_checker
from contexthub.rbac.roles import (
    SYSTEM_ROLE_KEYS,
    RoleKey,
    get_default_role,
    get_role_level,
)
from contexthub.schemas.rbac import RoleCreateSchema, RoleUpdateSchema
from contexthub.services import rbac_seed_service

if TYPE_CHECKING:
    from contexthub.services.rbac_service import AuthContext

logger = logging.getLogger(__name__)

MAX_ROLE_LEVEL = get_role_level(RoleKey.OWNER)


class RoleServiceError(Exception):
    """Base exception for role service errors."""


class RoleNotFoundError(RoleServiceError):
    """The requested role does not exist."""


class RoleValidationError(RoleServiceError):
    """The role payload is invalid."""


class RoleConflictError(RoleServiceError):
    """The role clashes with an existing role or is still in use."""


class RoleForbiddenError(RoleServiceError):
    """The actor is not allowed to perform the role change."""


def normalize_key(value: str | None) -> str:
    """Turn a role name or key into a lower-case, dash-separated key."""
    if not value:
        return ""
    return slugify(str(value), lowercase=True, separator="-")


def get_role_by_id(db: Session, role_id: uuid.UUID) -> Role | None:
    """Get a role by its ID."""
    return db.query(Role).filter(Role.id == role_id).first()


def get_role_by_key(db: Session, tenant_id: uuid.UUID | None, key: str) -> Role | None:
    """Get a role by key; a tenant_id of None targets system roles."""
    query = db.query(Role).filter(Role.key == key)
    if tenant_id is None:
        query = query.filter(Role.tenant_id.is_(None))
    else:
        query = query.filter(Role.tenant_id == tenant_id)
    return query.first()


def resolve_role(
    db: Session,
    tenant_id: uuid.UUID | None,
    role_key: str | None = None,
    role_id: uuid.UUID | None = None,
) -> Role | None:
    """Find the role a membership or token refers to.

    Lookup order: role id, tenant custom role by key, system role by key.
    A system role missing from the database is seeded from DEFAULT_ROLES.
    """
    if role_id is None and not role_key:
        return None

    if role_id is not None:
        role = get_role_by_id(db, role_id)
        if role is not None and role.tenant_id in (None, tenant_id):
            return role

    key = normalize_key(role_key)
    if not key:
        return None

    if tenant_id is not None:
        role = get_role_by_key(db, tenant_id, key)
        if role is not None:
            return role

    role = get_role_by_key(db, None, key)
    if role is not None:
        return role

    definition = get_default_role(key)
    if definition is None:
        return None

    logger.info(f"Seeding missing system role {key}")
    role = rbac_seed_service.upsert_system_role(db, definition)
    db.commit()
    return role


def list_roles(db: Session, tenant_id: uuid.UUID | None) -> list[Role]:
    """List system roles followed by the tenant's own roles, highest level first."""
    system_roles = (
        db.query(Role)
        .filter(Role.tenant_id.is_(None))
        .order_by(Role.level.desc(), Role.key)
        .all()
    )
    if tenant_id is None:
        return system_roles

    tenant_roles = (
        db.query(Role)
        .filter(Role.tenant_id == tenant_id)
        .order_by(Role.level.desc(), Role.key)
        .all()
    )
    return system_roles + tenant_roles


def _validate_level(level: int, actor: AuthContext | None) -> int:
    if level < 0 or level > MAX_ROLE_LEVEL:
        raise RoleValidationError("Invalid role level provided")
    if actor is not None and level > actor.level:
        raise RoleForbiddenError("Cannot grant a role level above your own")
    return level


def _sanitize_permissions(permissions: list[str], actor: AuthContext | None) -> list[str]:
    valid = permission_checker.sanitize_permissions(permissions)
    dropped = [p for p in permissions if p not in valid]
    if dropped:
        logger.warning(f"Dropping unknown permissions from role: {dropped}")
    if actor is not None:
        held = set(expand_permissions(actor.permissions))
        missing = sorted(set(expand_permissions(valid)) - held)
        if missing:
            logger.warning(f"Role permissions above the actor's own denied: {missing}")
            raise RoleForbiddenError("Cannot grant permissions you do not hold")
    return valid


def create_role(
    db: Session,
    tenant_id: uuid.UUID | None,
    data: RoleCreateSchema,
    actor: AuthContext | None = None,
) -> Role:
    """Create a tenant custom role.

    Args:
        db: Database session
        tenant_id: Owning tenant
        data: Role creation data
        actor: Context of the caller, used to stop privilege escalation

    Returns:
        Created Role

    Raises:
        RoleValidationError: Missing tenant, name or key, bad level, unknown base role
        RoleConflictError: Key already used by the tenant or reserved by a system role
        RoleForbiddenError: Requested level or permissions exceed the actor's own
    """
    if tenant_id is None:
        raise RoleValidationError("Tenant ID is required to create custom roles")

    name = (data.name or "").strip()
    if not name:
        raise RoleValidationError("Role name is required")

    key = normalize_key(data.key or name)
    if not key:
        raise RoleValidationError("Role key cannot be empty")

    if key in SYSTEM_ROLE_KEYS:
        raise RoleConflictError("Cannot override a system role key")

    if get_role_by_key(db, tenant_id, key) is not None:
        raise RoleConflictError("A role with this key already exists for the tenant")

    base_role = None
    if data.base_role_key:
        base_role = resolve_role(db, tenant_id, role_key=data.base_role_key)
        if base_role is None:
            raise RoleValidationError("Base role not found")

    if data.level is not None:
        level = data.level
    elif base_role is not None:
        level = base_role.level
    else:
        level = get_role_level(RoleKey.VIEWER)
    level = _validate_level(level, actor)

    if data.permissions:
        permissions = data.permissions
    elif base_role is not None:
        permissions = list(base_role.permissions or [])
    else:
        permissions = []

    permissions = _sanitize_permissions(permissions, actor)
    operator_id = actor.user_id if actor is not None else None
    role = Role(
        tenant_id=tenant_id,
        key=key,
        name=name,
        description=(data.description or "").strip(),
        level=level,
        permissions=permissions,
        is_default=False,
        is_system=False,
        created_by=operator_id,
        updated_by=operator_id,
    )
    db.add(role)
    db.commit()
    db.refresh(role)
    logger.info(f"Created role {key} (level {level}) for tenant {tenant_id}")
    return role


def _ensure_mutable(role: Role, tenant_id: uuid.UUID | None, action: str, verb: str) -> None:
    if role.is_system or role.tenant_id is None:
        raise RoleForbiddenError(f"System roles cannot be {action}")
    if tenant_id is not None and role.tenant_id != tenant_id:
        raise RoleForbiddenError(f"Cannot {verb} roles outside of the tenant scope")


def update_role(
    db: Session,
    role: Role,
    tenant_id: uuid.UUID | None,
    data: RoleUpdateSchema,
    actor: AuthContext | None = None,
) -> Role:
    """Update a tenant custom role. System roles are immutable."""
    _ensure_mutable(role, tenant_id, "modified", "modify")
    if actor is not None and role.level > actor.level:
        raise RoleForbiddenError("Cannot modify a role above your own level")

    level = _validate_level(data.level, actor) if data.level is not None else None
    permissions = None
    if data.permissions is not None:
        permissions = _sanitize_permissions(data.permissions, actor)

    changed = False
    if data.name is not None and data.name.strip():
        role.name = data.name.strip()
        changed = True

    if data.description is not None:
        role.description = data.description.strip()
        changed = True

    if level is not None:
        role.level = level
        changed = True

    if permissions is not None:
        role.permissions = permissions
        changed = True

    if not changed:
        return role

    if actor is not None:
        role.updated_by = actor.user_id
    db.commit()
    db.refresh(role)
    logger.info(f"Updated role {role.key} for tenant {role.tenant_id}")
    return role


def delete_role(db: Session, role: Role, tenant_id: uuid.UUID | None) -> None:
    """Delete a tenant custom role that no membership uses any more."""
    _ensure_mutable(role, tenant_id, "removed", "delete")

    in_use = (
        db.query(Membership)
        .filter(Membership.tenant_id == role.tenant_id, Membership.role == role.key)
        .count()
    )
    if in_use > 0:
        raise RoleConflictError("Role is assigned to users and cannot be deleted")

    db.delete(role)
    db.commit()
    logger.info(f"Deleted role {role.key} for tenant {role.tenant_id}")
