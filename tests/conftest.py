"""Shared fixtures: in-memory database, seeded family, API client."""

import os

# Must be set before family_graph.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from family_graph.main import app
from family_graph.auth import create_access_token
from family_graph.database import Base, get_db
from family_graph.core import member_store
from family_graph.models.user import User
from family_graph.models.family import Family
from family_graph.models.family_user import FamilyUser


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# Seed data
# ============================================================================

@pytest.fixture
def admin(db):
    user = User(id="user-admin", email="admin@example.com", name="Family Admin")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def family(db, admin):
    fam = Family(id="fam-1", name="Nguyen", admin_user_id=admin.id)
    db.add(fam)
    db.add(FamilyUser(family_id=fam.id, user_id=admin.id))
    db.commit()
    return fam


@pytest.fixture
def make_member(db, family):
    """Create members through the store. Defaults: male, generation 1."""

    def _make(name, gender="male", generation=1, **fields):
        data = {"name": name, "gender": gender, "generation": generation}
        data.update(fields)
        return member_store.create_member(db, family.id, data)

    return _make


def reload(db, member_id):
    """Fresh copy of a member row, tombstones included."""
    db.expire_all()
    return member_store.find_member(db, member_id, include_deleted=True)


# ============================================================================
# API
# ============================================================================

@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict:
    token = create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}
