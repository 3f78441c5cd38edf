import os
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport

# ------------------------------------------------------------------
# TEST ENVIRONMENT
# Must be set BEFORE importing app.main: settings, the engine and the
# rate limiter are all built at import time.
# ------------------------------------------------------------------
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-certificate-tests-0123456789")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from app.main import app
from app.api.deps import get_session_factory
from app.core.database import build_engine, init_db, make_session_factory
from app.core.security import create_access_token
from app.services.certificate_service import CertificateLifecycle
from app.services.certificate_store import CertificateStore
from app.services.identifier_service import IdentifierGenerator
from app.services.verification_service import VerificationGateway


NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock; call tick() to move it forward."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def tick(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ScriptedGenerator(IdentifierGenerator):
    """Hands out a fixed list of (certificate_id, verification_code) pairs."""

    def __init__(self, pairs):
        super().__init__()
        self.pairs = list(pairs)
        self.calls = 0

    def generate_pair(self):
        self.calls += 1
        return self.pairs.pop(0)


def naive(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value.replace(tzinfo=None) if value else value


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    One SQLite file per test. A file (not :memory:) so that every session
    sees the same database and concurrent writers really contend.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'certificates.db'}")
    await init_db(engine)

    yield make_session_factory(engine)

    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(session_factory, clock):
    return CertificateStore(session_factory, generator=IdentifierGenerator(clock=clock), clock=clock)


@pytest.fixture
def lifecycle(store, clock):
    return CertificateLifecycle(store, generator=IdentifierGenerator(clock=clock), clock=clock)


@pytest.fixture
def gateway(store):
    return VerificationGateway(store)


@pytest.fixture
def issue(lifecycle):
    """Issues a valid certificate; keyword arguments override the defaults."""

    async def _issue(**overrides):
        kwargs = {
            "course_ref": "AI-101",
            "student_ref": "student-1",
            "course_snapshot": {"title": "Applied AI Foundations"},
            "student_snapshot": {"name": "Ada Lovelace", "email": "ada@example.com"},
        }
        kwargs.update(overrides)
        return await lifecycle.issue(**kwargs)

    return _issue


@pytest_asyncio.fixture
async def client(session_factory):
    """httpx >= 0.27: ASGITransport instead of app=..."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token("admin-1", role="admin")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers():
    token = create_access_token("student-1", role="student")
    return {"Authorization": f"Bearer {token}"}
