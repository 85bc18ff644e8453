"""Dependency injection for the Schema bounded context.

Composes infrastructure resources (write session, settings, tenant context)
with schema components (repositories, lock coordinator, DDL executor,
services). Every component built for one request shares that request's
write session, so DDL, metadata and advisory locks run on one connection.
"""

from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.dependencies import get_write_session
from infrastructure.settings import SchemaSettings, get_schema_settings
from infrastructure.tenant_dependencies import get_tenant_context
from schema.application.observability import (
    DefaultSchemaServiceProbe,
    SchemaServiceProbe,
)
from schema.application.services import SchemaService
from schema.infrastructure import (
    ChangeLogRepository,
    MetadataRepository,
    PostgresLockCoordinator,
    SessionDdlExecutor,
)
from schema.ports.protocols import SchemaChangeListener
from shared_kernel.middleware.tenant_context import TenantContext

_listeners: list[SchemaChangeListener] = []


def register_schema_change_listener(listener: SchemaChangeListener) -> None:
    """Register a hook notified after every committed schema change.

    Typically called once at startup, e.g. to invalidate a cache of table
    descriptors held by another component.
    """
    _listeners.append(listener)


def clear_schema_change_listeners() -> None:
    """Remove all registered listeners."""
    _listeners.clear()


def get_schema_change_listeners() -> list[SchemaChangeListener]:
    return list(_listeners)


def get_schema_service_probe() -> SchemaServiceProbe:
    """Get SchemaServiceProbe instance.

    Returns:
        DefaultSchemaServiceProbe instance for observability
    """
    return DefaultSchemaServiceProbe()


def get_metadata_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> MetadataRepository:
    """Get MetadataRepository instance.

    Args:
        session: Async database session

    Returns:
        MetadataRepository bound to the request's write session
    """
    return MetadataRepository(session=session)


def get_change_log_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> ChangeLogRepository:
    return ChangeLogRepository(session=session)


def get_lock_coordinator(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    settings: Annotated[SchemaSettings, Depends(get_schema_settings)],
) -> PostgresLockCoordinator:
    """Get PostgresLockCoordinator instance.

    Args:
        session: Async database session whose connection holds the locks
        settings: Lock timeout and retry settings

    Returns:
        PostgresLockCoordinator instance
    """
    return PostgresLockCoordinator(
        session=session,
        timeout_seconds=settings.lock_timeout_seconds,
        retry_interval_ms=settings.lock_retry_interval_ms,
        max_retries=settings.lock_max_retries,
    )


def get_ddl_executor(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> SessionDdlExecutor:
    return SessionDdlExecutor(session=session)


def get_actor(
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> str | None:
    """Optional caller identity recorded as ``performed_by`` in the change log."""
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()


def get_schema_service(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    metadata_repo: Annotated[MetadataRepository, Depends(get_metadata_repository)],
    change_log_repo: Annotated[ChangeLogRepository, Depends(get_change_log_repository)],
    lock_coordinator: Annotated[PostgresLockCoordinator, Depends(get_lock_coordinator)],
    ddl_executor: Annotated[SessionDdlExecutor, Depends(get_ddl_executor)],
    tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    settings: Annotated[SchemaSettings, Depends(get_schema_settings)],
    probe: Annotated[SchemaServiceProbe, Depends(get_schema_service_probe)],
    actor: Annotated[str | None, Depends(get_actor)],
) -> SchemaService:
    """Get SchemaService instance.

    Args:
        session: Database session for transaction management
        metadata_repo: Metadata repository (shares session via FastAPI dependency caching)
        change_log_repo: Change log repository (same session)
        lock_coordinator: Advisory lock coordinator (same session)
        ddl_executor: DDL executor (same session)
        tenant: Tenant context resolved from the request, used to scope the service
        settings: Schema settings
        probe: Schema service probe for observability
        actor: Optional caller identity for the audit trail

    Returns:
        SchemaService instance
    """
    return SchemaService(
        session=session,
        metadata_repository=metadata_repo,
        change_log_repository=change_log_repo,
        lock_coordinator=lock_coordinator,
        ddl_executor=ddl_executor,
        scope_to_tenant=tenant.tenant_id,
        settings=settings,
        probe=probe,
        listeners=get_schema_change_listeners(),
        performed_by=actor,
    )
