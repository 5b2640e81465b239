# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Schemas for the RBAC API."""

import uuid

from pydantic import BaseModel, ConfigDict, Field


class PermissionSchema(BaseModel):
    """Schema representing a catalog permission."""

    value: str
    label: str
    group: str | None
    is_manage: bool


class PermissionCatalogSchema(BaseModel):
    """The permission catalog with its grouping and manage aliases."""

    permissions: list[PermissionSchema]
    groups: dict[str, list[str]]
    manage_implied: dict[str, list[str]]
    scopes: list[str]


class RoleSchema(BaseModel):
    """Schema representing a role."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID | None
    key: str
    name: str
    description: str
    level: int
    permissions: list[str]
    is_default: bool
    is_system: bool


class RoleCreateSchema(BaseModel):
    """Schema for creating a tenant custom role."""

    name: str
    key: str | None = None
    description: str = ""
    level: int | None = None
    permissions: list[str] = []
    base_role_key: str | None = None


class RoleUpdateSchema(BaseModel):
    """Schema for updating a tenant custom role."""

    name: str | None = None
    description: str | None = None
    level: int | None = None
    permissions: list[str] | None = None


class MembershipRoleUpdateSchema(BaseModel):
    """Schema for changing a membership's role."""

    role: str = Field(min_length=1)


class MembershipSchema(BaseModel):
    """Schema representing a tenant membership."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    role: str
    role_id: uuid.UUID | None
    status: str
    permissions: list[str]


class MembershipWithPermissionsSchema(BaseModel):
    """A membership together with its resolved role and effective permissions."""

    membership: MembershipSchema
    role: RoleSchema | None
    permissions: list[str]


class AuthContextSchema(BaseModel):
    """The caller's effective authorization context."""

    tenant_id: uuid.UUID
    user_id: uuid.UUID | None
    api_token_id: uuid.UUID | None
    role: str | None
    level: int
    permissions: list[str]
    scopes: list[str]
    via_token: bool
