"""Pytest configuration and fixtures

Provides:
- db: fresh in-memory SQLite session per test
- client: TestClient with get_db overridden to that session
- auth_headers: identity headers as forwarded by the auth layer
- make_hangout: helper that creates a hangout through the API
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["REDIS_HOST"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from hangouts.database import Base, get_db  # noqa: E402
from hangouts.main import app  # noqa: E402


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def headers(user_id: str, name: str = None) -> dict:
    """Identity headers for a user"""
    return {"X-User-Id": user_id, "X-User-Name": name or user_id.capitalize()}


@pytest.fixture
def auth_headers():
    return headers


@pytest.fixture
def make_hangout(client: TestClient):
    """Create a hangout via the API and return the response body"""

    def _make(
        creator: str = "alice",
        options=("Bowling", "Karaoke"),
        participants=("bob", "carol"),
        **extra,
    ) -> dict:
        payload = {
            "title": "Friday night",
            "options": [{"title": title} for title in options],
            "participantIds": list(participants),
        }
        payload.update(extra)
        response = client.post("/hangouts", json=payload, headers=headers(creator))
        assert response.status_code == 201, response.text
        return response.json()

    return _make
