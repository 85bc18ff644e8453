"""Unit tests for database session dependencies."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_engine,
    get_read_session,
    get_write_engine,
    get_write_session,
)


@pytest_asyncio.fixture(autouse=True)
async def reset_engines():
    yield
    await close_database_connections()


class TestEngineSingletons:
    @pytest.mark.asyncio
    async def test_engines_are_created_once_per_role(self):
        """Repeated calls return the same engine for a role."""
        assert get_write_engine() is get_write_engine()
        assert get_read_engine() is get_read_engine()
        assert get_write_engine() is not get_read_engine()

    @pytest.mark.asyncio
    async def test_engines_use_asyncpg(self):
        engine = get_write_engine()
        assert isinstance(engine, AsyncEngine)
        assert engine.url.drivername == "postgresql+asyncpg"

    @pytest.mark.asyncio
    async def test_close_resets_engines(self):
        """After closing, engines are recreated on next use."""
        write = get_write_engine()

        await close_database_connections()

        assert get_write_engine() is not write


class TestSessions:
    @pytest.mark.asyncio
    async def test_write_session_is_bound_to_write_engine(self):
        """Write sessions run on the write pool."""
        engine = get_write_engine()
        async for session in get_write_session():
            assert isinstance(session, AsyncSession)
            assert session.bind.sync_engine is engine.sync_engine

    @pytest.mark.asyncio
    async def test_read_session_is_bound_to_read_engine(self):
        engine = get_read_engine()
        async for session in get_read_session():
            assert session.bind.sync_engine is engine.sync_engine
