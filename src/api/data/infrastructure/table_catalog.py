"""Table catalog backed by the schema context's metadata tables.

The data context reads descriptors but never writes them. Reading goes
through the schema context's metadata repository so both contexts map the
morph_* rows to descriptors the same way.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from data.ports.repositories import ITableCatalog
from schema.infrastructure.metadata_repository import MetadataRepository
from shared_kernel.schema_primitives import TableDescriptor


class MetadataTableCatalog(ITableCatalog):
    """Resolves logical table names to descriptors with their columns."""

    def __init__(self, session: AsyncSession):
        self._metadata = MetadataRepository(session)

    async def get_table(
        self, tenant_id: UUID, logical_name: str
    ) -> TableDescriptor | None:
        return await self._metadata.get_table_by_name(
            tenant_id, logical_name, include_columns=True
        )
