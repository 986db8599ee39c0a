"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database shared by every session
(StaticPool). The schema is created fresh for each test and dropped after,
so nothing leaks between tests.
"""
import os
import sys

# Must be set before any application module reads settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-chars")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.pop("OPENROUTER_API_KEY", None)

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine
import models  # noqa: F401  (registers tables)
from fixtures.chat_fixtures import make_user


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def app():
    from main import app as fastapi_app
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def test_user(db_session):
    return make_user(db_session, email="athlete@example.com", name="Test Athlete")


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, email="someone.else@example.com", name="Someone Else")
