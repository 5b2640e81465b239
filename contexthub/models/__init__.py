# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""Database models package."""

from contexthub.models.api_token import ApiToken
from contexthub.models.base import Base, TimestampMixin
from contexthub.models.enums import MembershipStatus
from contexthub.models.membership import Membership
from contexthub.models.role import Role

__all__ = [
    "ApiToken",
    "Base",
    "Membership",
    "MembershipStatus",
    "Role",
    "TimestampMixin",
]
