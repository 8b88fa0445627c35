from __future__ import annotations

import os

# Default to in-memory SQLite; set DATABASE_URL to run against PostgreSQL.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from hrflow.config import get_settings
from hrflow.db import get_session
from hrflow.main import app
from hrflow.models import SQLModel
from hrflow.services.certificate import InMemoryCertificateGenerator, set_certificate_generator
from hrflow.services.hooks import set_post_commit_hooks
from hrflow.services.identity import InMemoryIdentityProvider, set_identity_provider
from hrflow.services.notification import InMemoryNotifier, set_notifier
from hrflow.services.storage import InMemoryFileStore, set_file_store

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Async engine with all tables created.

    SQLite gets a fresh in-memory database per test. PostgreSQL keeps its tables
    and relies on the per-test outer transaction in ``db_session``.
    """
    url = get_settings().database_url
    if _is_sqlite(url):
        _engine = create_async_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    else:
        _engine = create_async_engine(url)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session whose work is discarded after each test."""
    if _is_sqlite(str(engine.url)):
        session = AsyncSession(engine, expire_on_commit=False)
        yield session
        await session.close()
        return

    async with engine.connect() as conn:
        txn = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False, join_transaction_mode="create_savepoint")
        yield session
        await session.close()
        await txn.rollback()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def identity() -> Iterator[InMemoryIdentityProvider]:
    """A fresh identity provider installed for the test."""
    provider = InMemoryIdentityProvider()
    set_identity_provider(provider)
    yield provider
    set_identity_provider(InMemoryIdentityProvider())


@pytest.fixture
def file_store() -> Iterator[InMemoryFileStore]:
    store = InMemoryFileStore()
    set_file_store(store)
    yield store
    set_file_store(None)


@pytest.fixture
def certificates() -> Iterator[InMemoryCertificateGenerator]:
    generator = InMemoryCertificateGenerator()
    set_certificate_generator(generator)
    yield generator
    set_certificate_generator(InMemoryCertificateGenerator())


@pytest.fixture
def notifier() -> Iterator[InMemoryNotifier]:
    sent = InMemoryNotifier()
    set_notifier(sent)
    yield sent
    set_notifier(InMemoryNotifier())


@pytest.fixture(autouse=True)
def _default_hooks() -> Iterator[None]:
    """Every test starts from the default post-commit hook list."""
    set_post_commit_hooks(None)
    yield
    set_post_commit_hooks(None)
