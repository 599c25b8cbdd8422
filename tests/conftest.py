"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, fresh schema per test
- JWT session minting for authenticated tests
- A recording email client injected in place of the Resend client
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["CRON_SECRET"] = ""
os.environ["TEST_SEND_TO_MAIL"] = ""
os.environ["SENTRY_DSN"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from appointly.core.deps import COOKIE_NAME, get_db, get_email_client
from appointly.core.security import create_session_token
from appointly.db.base import Base
from appointly.db.enums import AppointmentStatus, Role
from appointly.db.models import Appointment, User, UserPreferences
from appointly.db.session import SessionLocal, engine
from appointly.main import app
from appointly.services.email_sender import EmailSendError


# =============================================================================
# Email
# =============================================================================

@dataclass
class FakeEmailClient:
    """Records sends; raises for any recipient in fail_for."""
    sent: list[dict] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)
    closed: bool = False

    async def send_email(self, *, to: str, subject: str, html: str, text: str | None = None) -> str:
        if to in self.fail_for:
            raise EmailSendError(f"Resend API error: 500 (rejected {to})")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"msg_{len(self.sent)}"

    async def aclose(self) -> None:
        self.closed = True

    def recipients(self) -> list[str]:
        return [m["to"] for m in self.sent]


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema for every test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db: Session, role: Role = Role.USER, name: str = "Test User") -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"test-{uuid.uuid4().hex[:8]}@test.com",
        name=name,
        role=role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    return _make_user(db)


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    return _make_user(db, role=Role.ADMIN, name="Admin User")


@pytest.fixture
def make_user(db: Session):
    def factory(role: Role = Role.USER, name: str = "Test User") -> User:
        return _make_user(db, role=role, name=name)
    return factory


@pytest.fixture
def make_appointment(db: Session):
    """Insert an appointment directly, bypassing service side effects."""
    def factory(
        user: User,
        start: datetime,
        minutes: int = 30,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        **fields,
    ) -> Appointment:
        appointment = Appointment(
            user_id=user.id,
            title=fields.pop("title", "Dental checkup"),
            start_date_time=start,
            end_date_time=start + timedelta(minutes=minutes),
            duration=minutes,
            status=status.value,
            **fields,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment
    return factory


@pytest.fixture
def set_preferences(db: Session):
    def factory(user: User, **fields) -> UserPreferences:
        prefs = UserPreferences(user_id=user.id, **fields)
        db.add(prefs)
        db.commit()
        db.refresh(prefs)
        return prefs
    return factory


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    __test__ = False

    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def _auth_for(user: User) -> TestAuth:
    token = create_session_token(
        user_id=user.id,
        role=user.role,
        token_version=user.token_version,
    )
    return TestAuth(user=user, token=token)


@pytest.fixture(scope="function")
def test_auth(test_user: User) -> TestAuth:
    return _auth_for(test_user)


@pytest.fixture(scope="function")
def admin_auth(admin_user: User) -> TestAuth:
    return _auth_for(admin_user)


# =============================================================================
# Client Fixtures
# =============================================================================

def _install_overrides(db: Session, email_client: FakeEmailClient) -> None:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_client] = lambda: email_client


@pytest.fixture(scope="function")
async def client(db: Session, email_client: FakeEmailClient) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client (cron and health endpoints)."""
    _install_overrides(db, email_client)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _authed(auth: TestAuth) -> AsyncClient:
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={auth.cookie_name: auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    )


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    email_client: FakeEmailClient,
    test_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated AsyncClient with session cookie and CSRF header."""
    _install_overrides(db, email_client)
    async with await _authed(test_auth) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(
    db: Session,
    email_client: FakeEmailClient,
    admin_auth: TestAuth,
) -> AsyncGenerator[AsyncClient, None]:
    _install_overrides(db, email_client)
    async with await _authed(admin_auth) as c:
        yield c
    app.dependency_overrides.clear()
