"""Collaborator protocols used by the schema service."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from schema.domain.value_objects import SchemaOperation


@runtime_checkable
class LockHandle(Protocol):
    """A held advisory lock.

    Transaction-scoped handles are released by the database when the
    transaction ends, so ``release`` is a no-op for them.
    """

    resource_key: str

    @property
    def is_transaction_scoped(self) -> bool:
        """Whether the database releases the lock at transaction end."""
        ...

    async def release(self) -> None:
        """Release the lock if it is session-scoped."""
        ...


@runtime_checkable
class ILockCoordinator(Protocol):
    """Cluster-wide mutual exclusion for schema mutation."""

    async def acquire(self, resource_key: str, timeout: float | None = None) -> LockHandle:
        """Block until a transaction-scoped lock is held.

        Raises:
            LockAcquisitionTimeoutError: If the lock could not be acquired
                before the timeout or retry budget ran out
        """
        ...

    async def try_acquire(self, resource_key: str) -> tuple[bool, LockHandle | None]:
        """Try once to take a transaction-scoped lock without waiting."""
        ...

    async def acquire_session_lock(
        self, resource_key: str, timeout: float | None = None
    ) -> LockHandle:
        """Block until a session-scoped lock is held; caller must release it.

        Raises:
            LockAcquisitionTimeoutError: If the lock could not be acquired in time
        """
        ...


@runtime_checkable
class IDdlExecutor(Protocol):
    """Runs DDL statements inside the caller's transaction."""

    async def execute(self, statement: str) -> None:
        """Execute one statement.

        Raises:
            StatementExecutionError: If the database rejects the statement
        """
        ...

    async def execute_all(self, statements: Sequence[str]) -> None:
        """Execute statements in order, stopping at the first failure."""
        ...


@runtime_checkable
class SchemaChangeListener(Protocol):
    """Invalidation hook notified after a schema change has committed.

    Derived-schema caches (API models, serializers) register one of these to
    drop state for a tenant's table.
    """

    async def on_schema_changed(
        self,
        tenant_id: UUID,
        table_id: UUID,
        operation: SchemaOperation,
    ) -> None:
        """Handle a committed schema change."""
        ...
