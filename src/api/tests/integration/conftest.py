"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance (13 or newer, for
gen_random_uuid). Use docker-compose for testing.

Every test gets a fresh tenant id, so tests never see each other's tables.
Physical tables and metadata rows created for that tenant are removed
afterwards.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from data.application.services import DataService
from data.infrastructure import MetadataTableCatalog, QueryTranslator, RowRepository
from infrastructure.database.engines import create_write_engine
from infrastructure.database.models import METADATA_SCHEMA, Base
from infrastructure.settings import DatabaseSettings, SchemaSettings
from schema.application.services import SchemaService
from schema.infrastructure import (
    ChangeLogRepository,
    MetadataRepository,
    PostgresLockCoordinator,
    SessionDdlExecutor,
)
import schema.infrastructure.models  # noqa: F401  registers the metadata tables


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        MORPH_DB_HOST, MORPH_DB_PORT, etc.
    """
    return DatabaseSettings(
        host=os.getenv("MORPH_DB_HOST", "localhost"),
        port=int(os.getenv("MORPH_DB_PORT", "5432")),
        database=os.getenv("MORPH_DB_DATABASE", "morph"),
        username=os.getenv("MORPH_DB_USERNAME", "morph"),
        password=SecretStr(os.getenv("MORPH_DB_PASSWORD", "morph_dev_password")),
        pool_min_connections=1,
        pool_max_connections=5,
    )


@pytest_asyncio.fixture
async def engine(integration_db_settings: DatabaseSettings) -> AsyncGenerator[AsyncEngine, None]:
    """Provide a write engine with the metadata tables in place."""
    engine = create_write_engine(integration_db_settings)
    async with engine.begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{METADATA_SCHEMA}"'))
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Provide a session factory for tests that need several connections."""
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def tenant_id(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[UUID, None]:
    """A fresh tenant whose tables are dropped after the test."""
    tenant = uuid4()
    yield tenant

    async with session_factory() as session, session.begin():
        tables = (
            await session.execute(
                text(
                    f"SELECT id, physical_name FROM {METADATA_SCHEMA}.morph_tables "
                    "WHERE tenant_id = :tenant"
                ),
                {"tenant": tenant},
            )
        ).all()
        ids = [row.id for row in tables]
        for row in tables:
            await session.execute(text(f'DROP TABLE IF EXISTS "{row.physical_name}" CASCADE'))
        if ids:
            for statement in (
                "DELETE FROM {schema}.morph_changelog WHERE table_id = ANY(:ids)",
                "DELETE FROM {schema}.morph_relations WHERE source_table_id = ANY(:ids) "
                "OR target_table_id = ANY(:ids)",
                "DELETE FROM {schema}.morph_indexes WHERE table_id = ANY(:ids)",
                "DELETE FROM {schema}.morph_columns WHERE table_id = ANY(:ids)",
                "DELETE FROM {schema}.morph_tables WHERE id = ANY(:ids)",
            ):
                await session.execute(
                    text(statement.format(schema=METADATA_SCHEMA)), {"ids": ids}
                )


def build_schema_service(
    session: AsyncSession, tenant_id: UUID, settings: SchemaSettings | None = None
) -> SchemaService:
    """Wire a SchemaService the way the request dependencies do."""
    settings = settings or SchemaSettings(lock_timeout_seconds=2.0)
    return SchemaService(
        session=session,
        metadata_repository=MetadataRepository(session),
        change_log_repository=ChangeLogRepository(session),
        lock_coordinator=PostgresLockCoordinator(
            session,
            timeout_seconds=settings.lock_timeout_seconds,
            retry_interval_ms=settings.lock_retry_interval_ms,
            max_retries=settings.lock_max_retries,
        ),
        ddl_executor=SessionDdlExecutor(session),
        scope_to_tenant=tenant_id,
        settings=settings,
    )


def build_data_service(session: AsyncSession) -> DataService:
    return DataService(
        session=session,
        catalog=MetadataTableCatalog(session),
        rows=RowRepository(session),
        translator=QueryTranslator(),
    )


@pytest.fixture
def schema_service(async_session: AsyncSession, tenant_id: UUID) -> SchemaService:
    return build_schema_service(async_session, tenant_id)


@pytest.fixture
def data_service(async_session: AsyncSession) -> DataService:
    return build_data_service(async_session)


@pytest.fixture
def schema_service_factory(
    tenant_id: UUID,
) -> Callable[[AsyncSession], SchemaService]:
    """Build schema services on separate sessions, e.g. to race two writers."""

    def factory(session: AsyncSession) -> SchemaService:
        return build_schema_service(session, tenant_id)

    return factory
