"""
Pytest configuration and fixtures.

WHY: Fixtures provide reusable test setup/teardown logic, reducing
duplication and ensuring consistent test environments.
"""

import os

# Settings are read at import time, so the environment must be in place
# before anything from helpdesk is imported.
os.environ.setdefault("JWT_SECRET", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTO_CLOSE_ENABLED", "false")

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Dict
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from helpdesk.main import app
from helpdesk.models.base import Base
from helpdesk.models.user import User
from helpdesk.db.session import get_db
from helpdesk.core.auth import create_account_token
from helpdesk.core.config import settings
from helpdesk.services import email as email_module
from helpdesk.services import file_storage as file_storage_module
from helpdesk.services.email import EmailService, MockEmailProvider
from helpdesk.services.file_storage import FileStorageService


# Test database URL
# WHY: Using SQLite for tests eliminates external database dependencies
# and makes tests faster.
TEST_ASYNC_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """
    Create a test database engine.

    WHY: Function scope ensures each test gets a fresh database state.
    StaticPool keeps the single in-memory database alive across sessions.
    """
    engine = create_async_engine(
        TEST_ASYNC_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # WHY: pysqlite's own transaction handling breaks SAVEPOINT, which
    # ticket number allocation relies on. Let SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a test database session.

    WHY: expire_on_commit=False matches the application's session factory,
    so objects created by factories stay usable after their commit.
    """
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test HTTP client.

    WHY: AsyncClient with ASGITransport exercises the full middleware and
    exception handler stack without running a server.
    """

    async def override_get_db():
        """Override database dependency with test session."""
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def use_mock_email_provider(monkeypatch):
    """
    Route every email through the mock provider.

    WHY: Tests must never reach the network. The global service is replaced
    and the recorded messages are cleared for each test.
    """
    monkeypatch.setattr(settings, "RESEND_API_KEY", None)
    monkeypatch.setattr(email_module, "_email_service", EmailService(provider=MockEmailProvider()))
    MockEmailProvider.clear_sent_emails()
    yield
    MockEmailProvider.clear_sent_emails()


@pytest.fixture(autouse=True)
def file_storage(tmp_path, monkeypatch) -> FileStorageService:
    """
    File store rooted in a per-test temporary directory.

    WHY: TicketService and the files router both resolve the shared store
    through get_file_storage(), so replacing the global covers both.
    """
    storage = FileStorageService(root=tmp_path / "uploads")
    monkeypatch.setattr(file_storage_module, "_file_storage", storage)
    return storage


def auth_headers(user: User) -> Dict[str, str]:
    """Bearer header for ``user`` without going through /auth/login."""
    token = create_account_token(
        account_id=user.id,
        email=user.email,
        name=user.full_name,
        company_id=user.company_id,
        roles=user.role_names,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for():
    """
    Expose auth_headers as a fixture.

    WHY: Test modules don't import conftest directly.
    """
    return auth_headers
