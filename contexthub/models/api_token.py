# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""API token model."""

import uuid as uuid_lib
from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from contexthub.models.base import Base
from contexthub.rbac.roles import RoleKey


class ApiToken(Base):
    """Tenant API token carrying a system role and coarse scopes."""

    __tablename__ = "api_tokens"

    id: Mapped[uuid_lib.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid_lib.uuid4,
    )
    tenant_id: Mapped[uuid_lib.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Token secret digest; issuing and verifying tokens happens upstream
    hash: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(
        String(100), default=RoleKey.EDITOR.value, nullable=False
    )
    scopes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    created_by: Mapped[uuid_lib.UUID | None] = mapped_column(
        Uuid(as_uuid=True), nullable=True
    )

    __table_args__ = (Index("ix_api_tokens_tenant_hash", "tenant_id", "hash"),)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the token is past its expiry time."""
        if self.expires_at is None:
            return False
        return self.expires_at < (now or datetime.utcnow())
