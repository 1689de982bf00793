"""
Test configuration: in-memory database, data factories and an authenticated API client.

Environment is pinned before any pmhub import so settings never read a developer .env.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["TZ_DEFAULT"] = "UTC"
os.environ["RATE_LIMIT"] = "10000/minute"

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pmhub.auth.security import create_access_token, get_password_hash
from pmhub.db import Base, get_db
from pmhub.main import app
from pmhub.models.models import Asset, Location, PMTemplate, Role, Tenant, User, WorkOrder

# Wednesday, mid-afternoon UTC
NOW = datetime(2026, 1, 14, 15, 0, tzinfo=timezone.utc)

PM_ADMIN_PERMISSIONS = {"pm:access": True, "pm:read": True, "pm:write": True, "pm:complete": True}
PM_VIEWER_PERMISSIONS = {"pm:access": True, "pm:read": True}


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_tenant(db):
    def _make(name="Acme Facilities", timezone="UTC"):
        tenant = Tenant(name=name, timezone=timezone)
        db.add(tenant)
        db.commit()
        return tenant

    return _make


@pytest.fixture
def tenant(make_tenant):
    return make_tenant()


@pytest.fixture
def make_asset(db, tenant):
    def _make(name="Rooftop HVAC Unit", tenant_id=None):
        asset = Asset(tenant_id=tenant_id or tenant.id, name=name)
        db.add(asset)
        db.commit()
        return asset

    return _make


@pytest.fixture
def asset(make_asset):
    return make_asset()


@pytest.fixture
def make_location(db, tenant):
    def _make(name="Building A", tenant_id=None):
        location = Location(tenant_id=tenant_id or tenant.id, name=name)
        db.add(location)
        db.commit()
        return location

    return _make


@pytest.fixture
def location(make_location):
    return make_location()


@pytest.fixture
def template(db, tenant):
    template = PMTemplate(
        tenant_id=tenant.id,
        name="Filter Replacement",
        description="Replace air handler filters",
        category="hvac",
        checklist={"items": ["Power off unit", "Swap filters", "Log pressure drop"]},
        estimated_duration_hours=1.5,
    )
    db.add(template)
    db.commit()
    return template


@pytest.fixture
def make_work_order(db, tenant):
    counter = {"n": 0}

    def _make(status="open", tenant_id=None):
        counter["n"] += 1
        work_order = WorkOrder(
            tenant_id=tenant_id or tenant.id,
            work_order_number=f"WO-TEST-{counter['n']:04d}",
            title="Quarterly inspection",
            status=status,
            origin_source="pm_schedule",
        )
        db.add(work_order)
        db.commit()
        return work_order

    return _make


@pytest.fixture
def make_user(db, tenant):
    def _make(username="pm.admin", permissions=None, tenant_id=None):
        role = db.query(Role).filter(Role.name == f"role_{username}").first()
        if role is None:
            role = Role(name=f"role_{username}", permissions=dict(permissions or PM_ADMIN_PERMISSIONS))
            db.add(role)
        user = User(
            tenant_id=tenant_id or tenant.id,
            username=username,
            email=f"{username}@example.com",
            full_name=username.replace(".", " ").title(),
            password_hash=get_password_hash("s3cret-pass"),
        )
        user.roles.append(role)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


# =============================================================================
# API CLIENT
# =============================================================================


def auth_headers(user):
    token = create_access_token(str(user.id), tenant_id=str(user.tenant_id), roles=[r.name for r in user.roles])
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, user):
    client.headers.update(auth_headers(user))
    return client
