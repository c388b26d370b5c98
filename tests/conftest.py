"""
Shared fixtures: a fresh SQLite database per test and an HTTP client wired
to it through dependency overrides.
"""

import os

# Must be set before the application modules read their settings
os.environ["LOG_DIR"] = ""
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient

from idsyncro.core.database import build_engine, build_sessionmaker, get_session, init_db
from idsyncro.handlers.sequence import SequenceAllocator, get_allocator
from idsyncro.utils.signing import HashSigner, get_signer
from main import app


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'idsyncro-test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def allocator(sessionmaker):
    return SequenceAllocator(sessionmaker, prefix="SWT")


@pytest.fixture
def signer():
    return HashSigner()


@pytest.fixture
async def client(sessionmaker, allocator, signer):
    async def _session_override():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_allocator] = lambda: allocator
    app.dependency_overrides[get_signer] = lambda: signer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
