# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Tenant membership model."""

from __future__ import annotations

import uuid as uuid_lib
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from contexthub.models.base import Base, TimestampMixin
from contexthub.models.enums import MembershipStatus

if TYPE_CHECKING:
    from contexthub.models.role import Role


class Membership(Base, TimestampMixin):
    """A user's role inside one tenant, plus any directly granted permissions."""

    __tablename__ = "memberships"

    id: Mapped[uuid_lib.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid_lib.uuid4,
    )
    tenant_id: Mapped[uuid_lib.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    user_id: Mapped[uuid_lib.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    role: Mapped[str] = mapped_column(String(100), nullable=False)
    role_id: Mapped[uuid_lib.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )
    permissions: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=MembershipStatus.ACTIVE.value, nullable=False
    )
    invited_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="_membership_tenant_user_uc"),
    )

    @validates("permissions")
    def _clean_permissions(self, _key: str, values: list[str] | None) -> list[str]:
        unique: dict[str, None] = {}
        for value in values or []:
            if value and value.strip():
                unique[value.strip()] = None
        return list(unique)

    @validates("status")
    def _stamp_status(self, _key: str, status: str) -> str:
        if status == MembershipStatus.PENDING.value and self.invited_at is None:
            self.invited_at = datetime.utcnow()
        if status == MembershipStatus.ACTIVE.value and self.accepted_at is None:
            self.accepted_at = datetime.utcnow()
        return status

    def get_effective_permissions(self, role: Role | None) -> list[str]:
        """Union of the role's permissions and the membership's own grants."""
        effective: dict[str, None] = {}
        if role is not None:
            for permission in role.permissions or []:
                if permission:
                    effective[permission] = None
        for permission in self.permissions or []:
            if permission:
                effective[permission] = None
        return list(effective)
