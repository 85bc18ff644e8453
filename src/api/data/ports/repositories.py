"""Repository protocols (ports) for the data bounded context.

Implementations never commit; DataService owns the transaction boundary.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable
from uuid import UUID

from shared_kernel.schema_primitives import TableDescriptor


@runtime_checkable
class ITableCatalog(Protocol):
    """Read-only view of the tenant's table descriptors."""

    async def get_table(
        self, tenant_id: UUID, logical_name: str
    ) -> TableDescriptor | None:
        """Get an active table with its active columns, or None."""
        ...


@runtime_checkable
class IRowRepository(Protocol):
    """Executes parameterized DML and queries against dynamic tables.

    Statements use ``:name`` bind parameters. Result rows are keyed by
    physical column name.
    """

    async def fetch_all(
        self, sql: str, parameters: Mapping[str, Any]
    ) -> list[dict[str, Any]]:
        ...

    async def fetch_one(
        self, sql: str, parameters: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Return the first row, or None when the statement yields none."""
        ...

    async def fetch_scalar(self, sql: str, parameters: Mapping[str, Any]) -> Any:
        ...

    async def execute(self, sql: str, parameters: Mapping[str, Any]) -> int:
        """Execute a statement and return the affected row count.

        Raises:
            DataValidationError: If the statement violates a unique constraint
            StatementExecutionError: If the database rejects the statement
        """
        ...
