"""
Pytest configuration and fixtures for Social Planner API tests.
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import base64
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from social_planner.database import Base, get_db
from social_planner.errors import PlatformError
from social_planner.limiter import limiter
from social_planner.main import app
from social_planner.models.user import User, ROLE_ADMIN, ROLE_EDITOR
from social_planner.auth import get_password_hash, create_access_token
from social_planner.routes.deps import get_publishers, get_object_storage, get_mail_notifier, get_clock
from social_planner.storage import ObjectStorage

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

LIMA = ZoneInfo("America/Lima")

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PDF_BYTES = b"%PDF-1.4 fake document"

# Global session for sharing across requests
_test_session = None


def get_test_db():
    """Get the shared test database session."""
    yield _test_session


def data_uri(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode()}"


def lima_time(*args) -> datetime:
    return datetime(*args, tzinfo=LIMA)


# ============================================================
# FAKES
# ============================================================

class FakePublisher:
    """Records every publish call; fails when `error` is set."""

    def __init__(self, platform: str, error: PlatformError = None):
        self.platform = platform
        self.error = error
        self.calls = []

    def publish(self, request, media, connection):
        self.calls.append({"request": request, "media": media, "connection": connection})
        if self.error is not None:
            raise self.error
        return {"id": f"{self.platform}-{request.post_id}"}


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def notify_approval_requested(self, post, approver):
        self.sent.append(("requested", post.id, approver))
        return True

    def notify_approval_decision(self, post, approved, reason=None):
        self.sent.append(("decision", post.id, approved, reason))
        return True

    def notify_published(self, post, results):
        self.sent.append(("published", post.id, sorted(results)))
        return True


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    global _test_session

    Base.metadata.create_all(bind=engine)
    _test_session = TestingSessionLocal()
    app.dependency_overrides[get_db] = get_test_db

    yield _test_session

    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db):
    """Hands the scheduler the test session; closing it is a no-op."""
    class _Session:
        def __getattr__(self, name):
            return getattr(db, name)

        def close(self):
            pass

    return lambda: _Session()


@pytest.fixture
def publishers():
    return {"facebook": FakePublisher("facebook"), "linkedin": FakePublisher("linkedin")}


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def storage():
    """Unconfigured storage: inline payloads stay inline."""
    return ObjectStorage(client=None)


@pytest.fixture
def clock():
    return FakeClock(lima_time(2025, 1, 1, 9, 5))


@pytest.fixture(scope="function")
def client(db, publishers, notifier, storage, clock):
    """Create a test client with fake platforms, notifier and clock."""
    app.dependency_overrides[get_publishers] = lambda: publishers
    app.dependency_overrides[get_mail_notifier] = lambda: notifier
    app.dependency_overrides[get_object_storage] = lambda: storage
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c


def _make_user(db, email: str, role: str) -> User:
    user = User(
        email=email,
        hashed_password=get_password_hash("testpassword123"),
        full_name=email.split("@")[0].title(),
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture(scope="function")
def test_user(db):
    """An editor who owns posts."""
    return _make_user(db, "test@example.com", ROLE_EDITOR)


@pytest.fixture(scope="function")
def approver_user(db):
    return _make_user(db, "approver@example.com", ROLE_EDITOR)


@pytest.fixture(scope="function")
def admin_user(db):
    return _make_user(db, "admin@example.com", ROLE_ADMIN)


@pytest.fixture(scope="function")
def auth_headers(test_user):
    return _headers(test_user)


@pytest.fixture(scope="function")
def approver_headers(approver_user):
    return _headers(approver_user)


@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return _headers(admin_user)
