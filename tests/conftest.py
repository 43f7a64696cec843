"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Slack is replaced by FakeSlack (tests/helpers.py), which records every call
and answers like the Web API would.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from coaching_portal.db.base import Base, get_db
from coaching_portal.main import app
from coaching_portal.services.slack_client import get_slack_client
from coaching_portal.services.surveys import seed_core_competencies
from coaching_portal.services.templates import seed_default_templates

from helpers import FakeSlack

SQLITE_URL = "sqlite:///./test_coaching_portal.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    # Seed default templates and competencies (normally done by Alembic migration)
    db = TestingSessionLocal()
    try:
        seed_default_templates(db)
        seed_core_competencies(db)
    finally:
        db.close()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def fake_slack():
    return FakeSlack()


@pytest.fixture()
def client(db, fake_slack):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_slack_client] = lambda: fake_slack
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
