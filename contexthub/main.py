# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from contexthub import __version__
from contexthub.config import get_settings
from contexthub.database import SessionLocal
from contexthub.services import rbac_seed_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    # Startup: make sure the system roles exist and match DEFAULT_ROLES
    if settings.seed_system_roles:
        logger.info("Seeding system roles...")
        db = SessionLocal()
        try:
            rbac_seed_service.ensure_system_roles(db)
        except Exception as e:
            logger.error(f"Error seeding system roles: {e}")
        finally:
            db.close()

    yield

    logger.info("Shutting down...")

app = FastAPI(
    title=settings.app_name,
    description="Role-based access control for ContextHub tenants",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for the admin dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


# Import and include API router after it's created
from contexthub.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")
