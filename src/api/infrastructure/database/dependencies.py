"""Database dependency injection for FastAPI.

Provides async session factories for read and write operations. Engines and
sessionmakers are created lazily on first use and shared process-wide.
"""

from __future__ import annotations

import threading
from typing import AsyncGenerator, Callable

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_read_engine, create_write_engine
from infrastructure.observability import DefaultConnectionProbe
from infrastructure.settings import DatabaseSettings, get_database_settings

# Module-level probe for observability
_probe = DefaultConnectionProbe()

# Engine and sessionmaker per role ("write", "read"), created on first use
_engines: dict[str, AsyncEngine] = {}
_sessionmakers: dict[str, async_sessionmaker[AsyncSession]] = {}

_FACTORIES: dict[str, Callable[[DatabaseSettings], AsyncEngine]] = {
    "write": create_write_engine,
    "read": create_read_engine,
}

# Thread lock for safe engine initialization
_engine_lock = threading.Lock()


def _get_sessionmaker(role: str) -> async_sessionmaker[AsyncSession]:
    """Get (creating on first call) the sessionmaker for an engine role.

    Uses double-check locking for thread-safe initialization.
    """
    if role not in _sessionmakers:
        with _engine_lock:
            # Double-check after acquiring lock
            if role not in _sessionmakers:
                settings = get_database_settings()
                engine = _FACTORIES[role](settings)
                _engines[role] = engine
                _sessionmakers[role] = async_sessionmaker(
                    engine,
                    expire_on_commit=False,
                    class_=AsyncSession,
                )
                _probe.pool_initialized(
                    min_conn=settings.pool_min_connections,
                    max_conn=settings.pool_max_connections,
                )
    return _sessionmakers[role]


def get_write_engine() -> AsyncEngine:
    """Get the write database engine (singleton)."""
    _get_sessionmaker("write")
    return _engines["write"]


def get_read_engine() -> AsyncEngine:
    """Get the read database engine (singleton)."""
    _get_sessionmaker("read")
    return _engines["read"]


async def get_write_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a write session for mutations (FastAPI dependency).

    The session does NOT auto-commit. Services own the transaction
    boundary with ``async with session.begin()``; repositories only flush.

    Usage:
        @router.post("/tables")
        async def create_table(
            session: AsyncSession = Depends(get_write_session)
        ):
            async with session.begin():
                # DDL, metadata rows and change log commit together
                ...

    Yields:
        AsyncSession for database operations
    """
    async with _get_sessionmaker("write")() as session:
        yield session


async def get_read_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a read-only session for queries (FastAPI dependency).

    Read-only behaviour is not enforced at the database level (that
    requires role permissions); callers must only issue SELECTs.

    Yields:
        AsyncSession for read-only database operations
    """
    async with _get_sessionmaker("read")() as session:
        yield session


async def close_database_connections() -> None:
    """Close all database engine connections.

    Should be called on application shutdown to properly cleanup connections.
    Also resets sessionmakers to allow reinitialization.
    """
    for role in list(_engines):
        engine = _engines.pop(role)
        _sessionmakers.pop(role, None)
        await engine.dispose()
        _probe.pool_closed()
