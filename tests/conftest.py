"""
Pytest configuration and fixtures for Quill API tests.
"""
import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth import create_access_token
from app.database import Base, get_db
from app.limiter import limiter
from app.main import app
from app.models.user import Role, User
from app.services.errors import StorageError
from app.services.storage import ResourcePage, StorageProvider, StoredObject, get_storage

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None


def get_test_db():
    """Get the shared test database session."""
    global _test_session
    try:
        yield _test_session
    finally:
        pass


def cdn_url(public_id: str) -> str:
    return f"https://res.cloudinary.com/demo/image/upload/v1700000000/{public_id}.jpg"


class FakeStorage(StorageProvider):
    """In-memory storage provider with a small page size so paging is exercised."""

    page_size = 2

    def __init__(self):
        self.objects = {}  # public_id -> created_at
        self.destroyed = []
        self.failing = set()
        self.refusing = set()
        self.crashing = set()
        self.listing_fails = False

    def add(self, *public_ids, age_days=30):
        created_at = None
        if age_days is not None:
            created_at = datetime.now(timezone.utc) - timedelta(days=age_days)
        for public_id in public_ids:
            self.objects[public_id] = created_at

    async def list_page(self, cursor=None):
        if self.listing_fails:
            raise StorageError("Storage provider timed out after 15.0s")
        ids = sorted(self.objects)
        start = int(cursor or 0)
        end = start + self.page_size
        return ResourcePage(
            resources=[StoredObject(public_id=i, created_at=self.objects[i]) for i in ids[start:end]],
            next_cursor=str(end) if end < len(ids) else None,
        )

    async def destroy(self, public_id):
        self.destroyed.append(public_id)
        if public_id in self.failing:
            raise StorageError(f"Storage provider request failed: {public_id}")
        if public_id in self.crashing:
            raise AttributeError("'str' object has no attribute 'get'")
        if public_id in self.refusing:
            return "error"
        if self.objects.pop(public_id, False) is False:
            return "not found"
        return "ok"


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create a session
    _test_session = TestingSessionLocal()

    # Override the get_db dependency
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    # Cleanup
    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None

    # Drop all tables
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def storage(db):
    """Fake storage provider wired into the app."""
    fake = FakeStorage()
    app.dependency_overrides[get_storage] = lambda: fake
    return fake


@pytest.fixture(scope="function")
def client(db, storage):
    """Create a test client."""
    with TestClient(app) as c:
        yield c


def _make_user(db, username, role):
    user = User(
        username=username,
        email=f"{username}@example.com",
        role=role.value,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def member(db):
    return _make_user(db, "author", Role.MEMBER)


@pytest.fixture(scope="function")
def other_member(db):
    return _make_user(db, "bystander", Role.MEMBER)


@pytest.fixture(scope="function")
def reader(db):
    return _make_user(db, "reader", Role.USER)


@pytest.fixture(scope="function")
def moderator(db):
    return _make_user(db, "moderator", Role.ADMIN)


@pytest.fixture(scope="function")
def second_moderator(db):
    return _make_user(db, "moderator2", Role.ADMIN)


def headers_for(user):
    """Bearer headers for a user."""
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture(scope="function")
def auth_headers(member):
    """Auth headers for the member author."""
    return headers_for(member)


@pytest.fixture(scope="function")
def moderator_headers(moderator):
    return headers_for(moderator)
