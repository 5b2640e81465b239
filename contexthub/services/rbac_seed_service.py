# contexthub/services/rbac_seed_service.py
import logging

from sqlalchemy.orm import Session

from contexthub.models import Role
from contexthub.rbac.roles import DEFAULT_ROLES, RoleDefinition

logger = logging.getLogger(__name__)


def upsert_system_role(db: Session, definition: RoleDefinition) -> Role:
    """Create or refresh one tenant-less system role from its definition.

    The caller is responsible for committing.
    """
    role = (
        db.query(Role)
        .filter(Role.tenant_id.is_(None), Role.key == definition.key)
        .first()
    )
    if role is None:
        role = Role(tenant_id=None, key=definition.key)
        db.add(role)

    role.name = definition.name
    role.description = definition.description
    role.level = definition.level
    role.permissions = list(definition.permissions)
    role.is_default = True
    role.is_system = True
    db.flush()
    return role


def ensure_system_roles(db: Session) -> list[Role]:
    """Seeds the database with the default system roles.

    This function is idempotent: existing rows are brought back in line with
    DEFAULT_ROLES.
    @param db: SQLAlchemy Session object
    """
    roles = [upsert_system_role(db, definition) for definition in DEFAULT_ROLES]
    db.commit()
    logger.info(f"Ensured {len(roles)} system roles")
    return roles
