"""PostgreSQL implementation of IChangeLogRepository."""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from schema.domain.value_objects import ChangeLogEntry, SchemaOperation
from schema.infrastructure.models import MorphChangeLogModel
from schema.infrastructure.observability import (
    DefaultMetadataRepositoryProbe,
    MetadataRepositoryProbe,
)
from schema.ports.repositories import IChangeLogRepository


class ChangeLogRepository(IChangeLogRepository):
    """Append-only store for schema change records.

    Entries are written in the same transaction as the change they
    describe, so a rolled-back mutation leaves no audit record behind.
    """

    def __init__(
        self,
        session: AsyncSession,
        probe: MetadataRepositoryProbe | None = None,
    ) -> None:
        self._session = session
        self._probe = probe or DefaultMetadataRepositoryProbe()

    async def append(self, entry: ChangeLogEntry) -> ChangeLogEntry:
        performed_at = entry.performed_at or datetime.now(UTC)
        self._session.add(
            MorphChangeLogModel(
                id=entry.change_id,
                table_id=entry.table_id,
                operation=entry.operation.value,
                schema_version=entry.schema_version,
                changes=dict(entry.changes),
                performed_by=entry.performed_by,
                performed_at=performed_at,
            )
        )
        await self._session.flush()

        self._probe.change_logged(
            table_id=str(entry.table_id),
            operation=entry.operation.value,
            version=entry.schema_version,
        )
        return ChangeLogEntry(
            change_id=entry.change_id,
            table_id=entry.table_id,
            operation=entry.operation,
            schema_version=entry.schema_version,
            changes=dict(entry.changes),
            performed_by=entry.performed_by,
            performed_at=performed_at,
        )

    async def get_history(self, table_id: UUID, limit: int = 100) -> list[ChangeLogEntry]:
        stmt = (
            select(MorphChangeLogModel)
            .where(MorphChangeLogModel.table_id == table_id)
            .order_by(
                MorphChangeLogModel.performed_at.desc(),
                MorphChangeLogModel.id.desc(),
            )
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return [
            ChangeLogEntry(
                change_id=model.id,
                table_id=model.table_id,
                operation=SchemaOperation(model.operation),
                schema_version=model.schema_version,
                changes=dict(model.changes or {}),
                performed_by=model.performed_by,
                performed_at=model.performed_at,
            )
            for model in result.scalars().all()
        ]
