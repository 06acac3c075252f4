"""Pytest configuration and fixtures."""

import os

import pytest

# Set environment variables before imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PUBLIC_BASE_URL"] = ""
os.environ["TOKEN_MAX_ATTEMPTS"] = "20"
os.environ["LOG_LEVEL"] = "WARNING"

from fastapi.testclient import TestClient  # noqa: E402

from clicktrack.database import Base, SessionLocal, engine  # noqa: E402
from clicktrack.main import app  # noqa: E402
from clicktrack.models.project import Project  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    """Fresh schema for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def make_project(db_session):
    """Create projects directly in the store."""
    counter = {"n": 100}

    def _make(
        link_uid="ABC12345",
        project_uid=None,
        status="live",
        client_live_link="https://survey.example.com/s?r={MASKED_ID}&p={PROJECT_UID}&u={USER_ID}",
        client_test_link=None,
        name="Brand tracker",
    ):
        counter["n"] += 1
        project = Project(
            project_number=counter["n"],
            project_uid=project_uid or f"PUID{counter['n']:04d}",
            project_link_uid=link_uid,
            project_name=name,
            status=status,
            client_live_link=client_live_link,
            client_test_link=client_test_link,
        )
        db_session.add(project)
        db_session.commit()
        db_session.refresh(project)
        return project

    return _make
