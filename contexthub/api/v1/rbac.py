# contexthub/api/v1/rbac.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from contexthub.api.deps import get_auth_context, get_db, require_permission
from contexthub.rbac import (
    ALL_PERMISSIONS,
    MANAGE_IMPLIED_PERMISSIONS,
    PERMISSION_GROUPS,
    Permission,
    Scope,
    permission_checker,
)
from contexthub.schemas.rbac import (
    AuthContextSchema,
    MembershipRoleUpdateSchema,
    MembershipSchema,
    MembershipWithPermissionsSchema,
    PermissionCatalogSchema,
    PermissionSchema,
    RoleCreateSchema,
    RoleSchema,
    RoleUpdateSchema,
)
from contexthub.services import rbac_service, role_service
from contexthub.services.rbac_service import AuthContext
from contexthub.services.role_service import (
    RoleConflictError,
    RoleForbiddenError,
    RoleNotFoundError,
    RoleServiceError,
)

router = APIRouter()


def _raise_for_role_error(error: RoleServiceError) -> None:
    if isinstance(error, RoleNotFoundError):
        raise HTTPException(status_code=404, detail=str(error)) from error
    if isinstance(error, RoleForbiddenError):
        raise HTTPException(status_code=403, detail=str(error)) from error
    if isinstance(error, RoleConflictError):
        raise HTTPException(status_code=409, detail=str(error)) from error
    raise HTTPException(status_code=400, detail=str(error)) from error


@router.get("/rbac/permissions", response_model=PermissionCatalogSchema, summary="List the permission catalog")
def list_permissions(
    context: AuthContext = Depends(require_permission(Permission.ROLES_VIEW)),
):
    """Retrieve every permission in the catalog with its UI group, the manage
    aliases and what they imply, and the scopes an API token may carry.
    Requires roles:view permission.
    """
    return PermissionCatalogSchema(
        permissions=[
            PermissionSchema(**item)
            for item in permission_checker.format_permissions_for_display(ALL_PERMISSIONS)
        ],
        groups={
            group: [p.value for p in members] for group, members in PERMISSION_GROUPS.items()
        },
        manage_implied={
            alias.value: [p.value for p in implied]
            for alias, implied in MANAGE_IMPLIED_PERMISSIONS.items()
        },
        scopes=[scope.value for scope in Scope],
    )

@router.get("/rbac/roles", response_model=list[RoleSchema], summary="List system and tenant roles")
def list_roles(
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_permission(Permission.ROLES_VIEW)),
):
    """Retrieve the system roles followed by the tenant's custom roles.
    Requires roles:view permission.
    """
    return role_service.list_roles(db, context.tenant_id)


@router.post("/rbac/roles", response_model=RoleSchema, status_code=status.HTTP_201_CREATED, summary="Create a tenant custom role")
def create_role(
    role_in: RoleCreateSchema,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_permission(Permission.ROLES_MANAGE)),
):
    """Create a custom role for the caller's tenant.
    Unknown permissions are dropped; the level may not exceed the caller's.
    Requires roles:manage permission.
    """
    try:
        return role_service.create_role(db, context.tenant_id, role_in, actor=context)
    except RoleServiceError as e:
        _raise_for_role_error(e)


@router.put("/rbac/roles/{role_id}", response_model=RoleSchema, summary="Update a tenant custom role")
def update_role(
    role_id: uuid.UUID,
    role_in: RoleUpdateSchema,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_permission(Permission.ROLES_MANAGE)),
):
    """Update a custom role's name, description, level and permissions.
    System roles cannot be modified.
    Requires roles:manage permission.
    """
    role = role_service.get_role_by_id(db, role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    try:
        return role_service.update_role(db, role, context.tenant_id, role_in, actor=context)
    except RoleServiceError as e:
        _raise_for_role_error(e)


@router.delete("/rbac/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a tenant custom role")
def delete_role(
    role_id: uuid.UUID,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_permission(Permission.ROLES_MANAGE)),
):
    """Delete a custom role that is no longer assigned to anyone.
    System roles cannot be deleted.
    Requires roles:manage permission.
    """
    role = role_service.get_role_by_id(db, role_id)
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    try:
        role_service.delete_role(db, role, context.tenant_id)
    except RoleServiceError as e:
        _raise_for_role_error(e)
    return


@router.put("/rbac/memberships/{membership_id}/role", response_model=MembershipWithPermissionsSchema, summary="Change a member's role")
def update_membership_role(
    membership_id: uuid.UUID,
    assignment: MembershipRoleUpdateSchema,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_permission(Permission.USERS_ASSIGN_ROLE)),
):
    """Assign another role to a tenant member.
    Only owners can assign the owner role.
    Requires users:assign-role permission.
    """
    membership = rbac_service.get_membership_by_id(db, context.tenant_id, membership_id)
    if not membership:
        raise HTTPException(status_code=404, detail="User membership not found")

    try:
        membership, role = rbac_service.assign_membership_role(
            db, context, membership, assignment.role
        )
    except RoleServiceError as e:
        _raise_for_role_error(e)

    return MembershipWithPermissionsSchema(
        membership=MembershipSchema.model_validate(membership),
        role=RoleSchema.model_validate(role),
        permissions=rbac_service.get_membership_permissions(db, membership, role),
    )


@router.get("/rbac/me/permissions", response_model=AuthContextSchema, summary="Get the caller's effective permissions")
def get_my_permissions(
    context: AuthContext = Depends(get_auth_context),
):
    """Retrieve the caller's role, level and effective permissions in the
    current tenant. For API tokens the permissions are already narrowed by
    the token scopes.
    """
    return AuthContextSchema(
        tenant_id=context.tenant_id,
        user_id=context.user_id,
        api_token_id=context.api_token_id,
        role=context.role,
        level=context.level,
        permissions=sorted(context.permissions),
        scopes=list(context.scopes),
        via_token=context.via_token,
    )
