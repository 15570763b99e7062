"""Pytest configuration and fixtures."""

import json
import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from kasifesyen.config import Settings
from kasifesyen.database import Base, get_db
from kasifesyen.main import app
from kasifesyen.models.user import User


class AuthHeaders(dict):
    """Dict subclass that also stores the registered user's id and email."""

    def __init__(self, *args, user_id: int | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


# Use test database - PostgreSQL when DATABASE_URL is set, SQLite otherwise
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/kasifesyen", "/kasifesyen_test")
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Register a user and return auth headers with user info."""
    email = "test@example.com"
    response = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": "testpass123", "name": "Test User"},
    )
    assert response.status_code == 201
    data = response.json()

    return AuthHeaders(
        {"Authorization": f"Bearer {data['access_token']}"},
        user_id=data["user"]["id"],
        email=email,
    )


@pytest.fixture
def user(db):
    """A user row created directly in the database."""
    test_user = User(email="receipts@example.com", name="Receipt Owner", password_hash="fake")
    db.add(test_user)
    db.commit()
    db.refresh(test_user)
    return test_user


@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return Settings(
        _env_file=None,
        gemini_api_key="test-key",
        settlement_currency="MYR",
        exchange_rate_api_url="https://rates.test/v6/latest",
        fashion_request_timeout_seconds=60,
        image_synthesis_budget_fraction=0.5,
        placeholder_image_url="/images/outfit-placeholder.png",
    )


@pytest.fixture
def mock_gemini():
    """Gemini service double; set generate_text/generate_image return values per test."""
    gemini = MagicMock()
    gemini.is_configured = True
    gemini.generate_text = AsyncMock(return_value="")
    gemini.generate_image = AsyncMock(return_value=None)
    return gemini


@pytest.fixture
def cafe_receipt() -> str:
    """Model output for a plain ringgit receipt."""
    return json.dumps(
        {
            "isReceipt": True,
            "data": {
                "storeName": "Cafe X",
                "total": 10,
                "date": "2024-01-01",
                "items": [{"name": "Coffee", "price": 10}],
            },
            "confidenceScore": 0.92,
        }
    )
