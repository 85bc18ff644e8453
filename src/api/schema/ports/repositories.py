"""Repository protocols (ports) for the schema bounded context.

Implementations never commit. The calling service owns the transaction so
that DDL, descriptor writes, the version bump and the change log entry all
commit or roll back together.

"Not found" is an ordinary outcome and is returned as None rather than raised.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from schema.domain.value_objects import ChangeLogEntry
from shared_kernel.schema_primitives import (
    ColumnDescriptor,
    IndexDescriptor,
    RelationDescriptor,
    TableDescriptor,
)


@runtime_checkable
class IMetadataRepository(Protocol):
    """Durable, versioned storage of schema descriptors.

    Lookups only ever return active descriptors.
    """

    async def insert_table(self, table: TableDescriptor) -> None:
        """Persist a new table descriptor together with its columns.

        Raises:
            DuplicateNameError: If an active table with the same logical
                name already exists for the tenant
        """
        ...

    async def get_table_by_id(
        self, table_id: UUID, include_columns: bool = True
    ) -> TableDescriptor | None:
        """Retrieve an active table by id."""
        ...

    async def get_table_by_name(
        self, tenant_id: UUID, logical_name: str, include_columns: bool = True
    ) -> TableDescriptor | None:
        """Retrieve an active table by its exact logical name within a tenant."""
        ...

    async def list_tables(
        self, tenant_id: UUID, include_columns: bool = False
    ) -> list[TableDescriptor]:
        """List the tenant's active tables ordered by logical name."""
        ...

    async def update_table(
        self,
        table_id: UUID,
        logical_name: str | None = None,
        new_version: int | None = None,
    ) -> None:
        """Change a table's logical name and/or stored version.

        The physical name is immutable and never changes here.
        """
        ...

    async def soft_delete_table(self, table_id: UUID) -> None:
        """Mark a table and its columns, indexes and relations inactive."""
        ...

    async def insert_column(self, column: ColumnDescriptor) -> None:
        """Persist a new column descriptor.

        Raises:
            DuplicateNameError: If an active column with the same logical
                name already exists on the table
        """
        ...

    async def get_column_by_id(self, column_id: UUID) -> ColumnDescriptor | None:
        """Retrieve an active column by id."""
        ...

    async def get_columns(self, table_id: UUID) -> list[ColumnDescriptor]:
        """List a table's active columns ordered by ordinal position."""
        ...

    async def update_column(
        self,
        column_id: UUID,
        logical_name: str | None = None,
        default_value: str | None = None,
    ) -> None:
        """Change a column's logical name and/or stored default value."""
        ...

    async def soft_delete_column(self, column_id: UUID) -> None:
        """Mark a column inactive."""
        ...

    async def next_ordinal_position(self, table_id: UUID) -> int:
        """Next ordinal for a table, counting inactive columns so none is reused."""
        ...

    async def insert_index(self, index: IndexDescriptor) -> None:
        """Persist a new index descriptor."""
        ...

    async def get_index_by_id(self, index_id: UUID) -> IndexDescriptor | None:
        """Retrieve an active index by id."""
        ...

    async def list_indexes(self, table_id: UUID) -> list[IndexDescriptor]:
        """List a table's active indexes."""
        ...

    async def soft_delete_index(self, index_id: UUID) -> None:
        """Mark an index inactive."""
        ...

    async def insert_relation(self, relation: RelationDescriptor) -> None:
        """Persist a new relation descriptor."""
        ...

    async def get_relation_by_id(self, relation_id: UUID) -> RelationDescriptor | None:
        """Retrieve an active relation by id."""
        ...

    async def list_relations(self, tenant_id: UUID) -> list[RelationDescriptor]:
        """List the tenant's active relations."""
        ...

    async def soft_delete_relation(self, relation_id: UUID) -> None:
        """Mark a relation inactive."""
        ...

    async def current_version(self, table_id: UUID) -> int | None:
        """Read the current schema version of an active table."""
        ...

    async def increment_version(self, table_id: UUID) -> int:
        """Atomically increase a table's schema version by one.

        Returns:
            The new version

        Raises:
            TableNotFoundError: If the table does not exist or is inactive
        """
        ...


@runtime_checkable
class IChangeLogRepository(Protocol):
    """Append-only audit trail of schema mutations."""

    async def append(self, entry: ChangeLogEntry) -> ChangeLogEntry:
        """Record an entry and return it with its timestamp populated."""
        ...

    async def get_history(self, table_id: UUID, limit: int = 100) -> list[ChangeLogEntry]:
        """Return the newest ``limit`` entries for a table, newest first."""
        ...
