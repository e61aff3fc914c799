"""Pytest configuration and fixtures."""

import os

# Cheap hashes for tests; must be set before settings are first read
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from mentor_directory import models  # noqa: E402, F401
from mentor_directory.api.dependencies import get_directory  # noqa: E402
from mentor_directory.database import Base  # noqa: E402
from mentor_directory.main import app  # noqa: E402
from mentor_directory.services.directory import UserDirectory  # noqa: E402


class AuthHeaders(dict):
    """Dict subclass that also stores the registered account."""

    def __init__(self, *args, email: str = "", token: str = "", search_key: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.email = email
        self.token = token
        self.search_key = search_key


# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace(
        "/mentor_directory", "/mentor_directory_test"
    )
else:
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        from sqlalchemy_utils import create_database, database_exists

        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

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


@pytest.fixture
def session_factory():
    """Session factory bound to the test database."""
    return TestingSessionLocal


@pytest.fixture
def directory(session_factory):
    """User directory bound to the test database."""
    return UserDirectory(session_factory)


@pytest.fixture
def mentor(directory):
    """A registered mentor and the result of its creation."""
    return directory.create_user(
        {
            "email": "mentor@example.com",
            "name": "Ada Lovelace",
            "password": "pass1234",
            "type_user": "mentor",
        }
    )


@pytest.fixture(scope="function")
def client(directory):
    """Create a test client with the directory override."""
    app.dependency_overrides[get_directory] = lambda: directory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client):
    """Register a mentor and return bearer headers with its account info."""
    response = client.post(
        "/api/v1/users",
        json={
            "email": "test@example.com",
            "password": "testpass123",
            "password_confirmation": "testpass123",
            "name": "Test Mentor",
            "type_user": "mentor",
        },
    )
    assert response.status_code == 201
    data = response.json()["result"]

    return AuthHeaders(
        {"Authorization": f"Bearer {data['token']}"},
        email=data["email"],
        token=data["token"],
        search_key=data["search_key"],
    )
