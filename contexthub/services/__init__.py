"""Services package."""
from contexthub.services import (
    rbac_seed_service,
    rbac_service,
    role_service,
)

__all__ = [
    "rbac_seed_service",
    "rbac_service",
    "role_service",
]
