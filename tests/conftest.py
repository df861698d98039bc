"""
Test configuration: an isolated in-memory database per test and helpers to
create accounts with bearer tokens.

Environment is set before anything from fieldlog is imported, because the
settings object and the module-level engine are built at import time.
"""

import os
import sys
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from fieldlog.core import security
from fieldlog.db import models
from fieldlog.db.init_db import seed_categories
from fieldlog.db.session import get_db, make_engine
from fieldlog.main import app


@pytest.fixture
def db_engine():
    engine = make_engine("sqlite://")
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def client(db_engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def categories(db):
    """The default service categories, keyed by name."""
    seed_categories(db)
    return {row.name: row.id for row in db.query(models.ServiceCategory).all()}


@pytest.fixture
def make_account(db):
    """
    Create a login account, optionally with an engineer profile.

    Returns (engineer_row_or_None, auth_headers).
    """

    def _make(email, role="engineer", employee_id=None, weekly=40, with_profile=True, active=True, password="password123"):
        user = models.User(email=email, full_name=email.split("@")[0].title(),
                           hashed_password=security.get_password_hash(password))
        db.add(user)
        db.flush()
        engineer = None
        if with_profile:
            engineer = models.Engineer(
                user_id=user.id,
                employee_id=employee_id or email.split("@")[0].upper(),
                full_name=user.full_name,
                email=email,
                role=role,
                weekly_hour_requirement=weekly,
                is_active=active,
            )
            db.add(engineer)
        db.commit()
        if engineer is not None:
            db.refresh(engineer)
        token = security.create_access_token({"sub": email})
        return engineer, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def admin(make_account):
    return make_account("admin@acme.com", role="admin", employee_id="ADM1")


@pytest.fixture
def engineer(make_account):
    return make_account("alice@acme.com", employee_id="E1")
