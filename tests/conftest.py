"""
Shared pytest fixtures for the issues API test suite.

Provides:
    - _schema: drop + create every table around each test (autouse)
    - db: a SQLAlchemy session bound to the in-memory test database
    - client: FastAPI TestClient
    - make_user / citizen / staff / admin: users with bearer tokens
    - make_issue: create an issue straight through the lifecycle service
"""

import os

# settings are read once at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.security import hash_password, make_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services import issue_lifecycle as lifecycle  # noqa: E402

PASSWORD = "secret123"
BRISBANE = [153.02, -27.47]

_password_hash = None


def _hashed_password():
    # bcrypt is slow; one hash serves every fixture user
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(PASSWORD)
    return _password_hash


def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user)}"}


# ── DB & app fixtures ────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client():
    return TestClient(app)


# ── Users ────────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role=UserRole.citizen, name=None, is_active=True):
        counter["n"] += 1
        user = User(
            email=f"{role.value}{counter['n']}@example.com",
            name=name or f"{role.value.title()} {counter['n']}",
            hashed_password=_hashed_password(),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def citizen(make_user):
    return make_user(UserRole.citizen)


@pytest.fixture()
def staff(make_user):
    return make_user(UserRole.staff)


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.admin)


# ── Issues ───────────────────────────────────────────────────────────────


@pytest.fixture()
def make_issue(db):
    def _make(reporter, title="Pothole", type="POTHOLE", coordinates=None, **kwargs):
        return lifecycle.create_issue(
            db,
            reporter.id,
            title=title,
            type=type,
            location={"geo": {"type": "Point", "coordinates": coordinates or BRISBANE}},
            **kwargs,
        )

    return _make
