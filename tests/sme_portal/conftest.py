"""Shared fixtures for SME portal tests.

Database tests run against a temporary SQLite file (aiosqlite driver, foreign
keys on). The model provider is replaced by a scripted double that replays
canned answers and records every call.
"""

from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sme_portal.models import Base, create_test_engine

from portal_doubles import ScriptedProvider


@pytest.fixture
def provider():
    return ScriptedProvider()


# ============================================================================
# Database fixtures
# ============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Temporary SQLite database with all tables created."""
    test_engine = create_test_engine(f"sqlite+aiosqlite:///{tmp_path / 'sme_portal.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session context factory that commits on success, like get_db_session."""
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def factory():
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return factory
