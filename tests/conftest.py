# SPDX-FileCopyrightText: 2025 Roland Knall <rknall@gmail.com>
# SPDX-License-Identifier: GPL-2.0-only
import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SEED_SYSTEM_ROLES"] = "false"

from contexthub.api.deps import get_principal
from contexthub.database import get_db
from contexthub.main import app
from contexthub.models import ApiToken, Membership
from contexthub.models.base import Base
from contexthub.services.rbac_seed_service import ensure_system_roles
from contexthub.services.rbac_service import Principal

# Test database setup
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def system_roles(db_session):
    """Seed the five system roles."""
    return {role.key: role for role in ensure_system_roles(db_session)}


@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_membership(db_session, tenant_id):
    """Factory creating an active membership in the test tenant."""

    def factory(role: str, permissions: list[str] | None = None, **kwargs) -> Membership:
        membership = Membership(
            tenant_id=kwargs.pop("tenant", tenant_id),
            user_id=kwargs.pop("user_id", uuid.uuid4()),
            role=role,
            permissions=permissions or [],
            **kwargs,
        )
        db_session.add(membership)
        db_session.commit()
        db_session.refresh(membership)
        return membership

    return factory


@pytest.fixture
def make_token(db_session, tenant_id):
    """Factory creating an API token in the test tenant."""

    def factory(role: str, scopes: list[str], **kwargs) -> ApiToken:
        token = ApiToken(
            tenant_id=kwargs.pop("tenant", tenant_id),
            name=kwargs.pop("name", "integration"),
            hash=uuid.uuid4().hex,
            role=role,
            scopes=scopes,
            **kwargs,
        )
        db_session.add(token)
        db_session.commit()
        db_session.refresh(token)
        return token

    return factory


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    """Authenticate the test client as a membership or API token."""

    def authenticate(subject: Membership | ApiToken) -> TestClient:
        if isinstance(subject, ApiToken):
            principal = Principal(tenant_id=subject.tenant_id, api_token_id=subject.id)
        else:
            principal = Principal(tenant_id=subject.tenant_id, user_id=subject.user_id)
        app.dependency_overrides[get_principal] = lambda: principal
        return client

    return authenticate
