"""PostgreSQL implementation of IMetadataRepository.

Maps between the morph_* ORM models and the immutable descriptors shared
with the data context. Writes are flushed but never committed; the schema
service owns the transaction.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schema.infrastructure.models import (
    MorphColumnModel,
    MorphIndexModel,
    MorphRelationModel,
    MorphTableModel,
)
from schema.infrastructure.observability import (
    DefaultMetadataRepositoryProbe,
    MetadataRepositoryProbe,
)
from schema.ports.repositories import IMetadataRepository
from shared_kernel.exceptions import DuplicateNameError, TableNotFoundError
from shared_kernel.schema_primitives import (
    ColumnDescriptor,
    DataType,
    IndexColumn,
    IndexDescriptor,
    IndexType,
    NullsPosition,
    ReferentialAction,
    RelationDescriptor,
    RelationType,
    SortDirection,
    TableDescriptor,
)


class MetadataRepository(IMetadataRepository):
    """Repository for table, column, index and relation descriptors."""

    def __init__(
        self,
        session: AsyncSession,
        probe: MetadataRepositoryProbe | None = None,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: AsyncSession from FastAPI dependency injection
            probe: Optional domain probe for observability
        """
        self._session = session
        self._probe = probe or DefaultMetadataRepositoryProbe()

    # Tables

    async def insert_table(self, table: TableDescriptor) -> None:
        self._session.add(
            MorphTableModel(
                id=table.table_id,
                tenant_id=table.tenant_id,
                logical_name=table.logical_name,
                physical_name=table.physical_name,
                schema_version=table.schema_version,
                descriptor=dict(table.descriptor),
                is_active=True,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateNameError("Table", table.logical_name) from e

        for column in table.columns:
            await self.insert_column(column)

    async def get_table_by_id(
        self, table_id: UUID, include_columns: bool = True
    ) -> TableDescriptor | None:
        stmt = select(MorphTableModel).where(
            MorphTableModel.id == table_id,
            MorphTableModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            self._probe.table_not_found(table=str(table_id))
            return None
        return await self._to_table(model, include_columns)

    async def get_table_by_name(
        self, tenant_id: UUID, logical_name: str, include_columns: bool = True
    ) -> TableDescriptor | None:
        stmt = select(MorphTableModel).where(
            MorphTableModel.tenant_id == tenant_id,
            MorphTableModel.logical_name == logical_name,
            MorphTableModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            self._probe.table_not_found(table=logical_name)
            return None
        return await self._to_table(model, include_columns)

    async def list_tables(
        self, tenant_id: UUID, include_columns: bool = False
    ) -> list[TableDescriptor]:
        stmt = (
            select(MorphTableModel)
            .where(
                MorphTableModel.tenant_id == tenant_id,
                MorphTableModel.is_active.is_(True),
            )
            .order_by(MorphTableModel.logical_name)
        )
        result = await self._session.execute(stmt)
        return [
            await self._to_table(model, include_columns)
            for model in result.scalars().all()
        ]

    async def update_table(
        self,
        table_id: UUID,
        logical_name: str | None = None,
        new_version: int | None = None,
    ) -> None:
        values: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if logical_name is not None:
            values["logical_name"] = logical_name
        if new_version is not None:
            values["schema_version"] = new_version

        stmt = (
            update(MorphTableModel)
            .where(MorphTableModel.id == table_id, MorphTableModel.is_active.is_(True))
            .values(**values)
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError as e:
            raise DuplicateNameError("Table", logical_name or str(table_id)) from e

    async def soft_delete_table(self, table_id: UUID) -> None:
        now = datetime.now(UTC)
        await self._session.execute(
            update(MorphTableModel)
            .where(MorphTableModel.id == table_id)
            .values(is_active=False, updated_at=now)
        )
        # Children go with the table; the physical objects were dropped with it
        for model in (MorphColumnModel, MorphIndexModel):
            await self._session.execute(
                update(model)
                .where(model.table_id == table_id, model.is_active.is_(True))
                .values(is_active=False, updated_at=now)
            )
        await self._session.execute(
            update(MorphRelationModel)
            .where(
                (MorphRelationModel.source_table_id == table_id)
                | (MorphRelationModel.target_table_id == table_id),
                MorphRelationModel.is_active.is_(True),
            )
            .values(is_active=False, updated_at=now)
        )

    # Columns

    async def insert_column(self, column: ColumnDescriptor) -> None:
        self._session.add(
            MorphColumnModel(
                id=column.column_id,
                table_id=column.table_id,
                logical_name=column.logical_name,
                physical_name=column.physical_name,
                data_type=column.data_type.value,
                native_type=column.native_type,
                ordinal_position=column.ordinal_position,
                is_nullable=column.is_nullable,
                is_unique=column.is_unique,
                is_primary_key=column.is_primary_key,
                is_indexed=column.is_indexed,
                is_encrypted=column.is_encrypted,
                default_value=column.default_value,
                check_expression=column.check_expression,
                is_active=True,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateNameError("Column", column.logical_name) from e

    async def get_column_by_id(self, column_id: UUID) -> ColumnDescriptor | None:
        stmt = select(MorphColumnModel).where(
            MorphColumnModel.id == column_id,
            MorphColumnModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        if model is None:
            self._probe.column_not_found(column_id=str(column_id))
            return None
        return self._to_column(model)

    async def get_columns(self, table_id: UUID) -> list[ColumnDescriptor]:
        stmt = (
            select(MorphColumnModel)
            .where(
                MorphColumnModel.table_id == table_id,
                MorphColumnModel.is_active.is_(True),
            )
            .order_by(MorphColumnModel.ordinal_position)
        )
        result = await self._session.execute(stmt)
        return [self._to_column(model) for model in result.scalars().all()]

    async def update_column(
        self,
        column_id: UUID,
        logical_name: str | None = None,
        default_value: str | None = None,
    ) -> None:
        values: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if logical_name is not None:
            values["logical_name"] = logical_name
        if default_value is not None:
            values["default_value"] = default_value

        stmt = (
            update(MorphColumnModel)
            .where(MorphColumnModel.id == column_id, MorphColumnModel.is_active.is_(True))
            .values(**values)
        )
        try:
            await self._session.execute(stmt)
        except IntegrityError as e:
            raise DuplicateNameError("Column", logical_name or str(column_id)) from e

    async def soft_delete_column(self, column_id: UUID) -> None:
        await self._session.execute(
            update(MorphColumnModel)
            .where(MorphColumnModel.id == column_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )

    async def next_ordinal_position(self, table_id: UUID) -> int:
        # Inactive columns count too, so ordinals are never handed out twice
        stmt = select(func.max(MorphColumnModel.ordinal_position)).where(
            MorphColumnModel.table_id == table_id
        )
        result = await self._session.execute(stmt)
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    # Indexes

    async def insert_index(self, index: IndexDescriptor) -> None:
        self._session.add(
            MorphIndexModel(
                id=index.index_id,
                table_id=index.table_id,
                logical_name=index.logical_name,
                physical_name=index.physical_name,
                columns=[
                    {
                        "column_id": str(c.column_id),
                        "physical_name": c.physical_name,
                        "direction": c.direction.value,
                        "nulls_position": c.nulls_position.value,
                    }
                    for c in index.columns
                ],
                index_type=index.index_type.value,
                is_unique=index.is_unique,
                where_clause=index.where_clause,
                is_active=True,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateNameError("Index", index.logical_name) from e

    async def get_index_by_id(self, index_id: UUID) -> IndexDescriptor | None:
        stmt = select(MorphIndexModel).where(
            MorphIndexModel.id == index_id,
            MorphIndexModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_index(model) if model is not None else None

    async def list_indexes(self, table_id: UUID) -> list[IndexDescriptor]:
        stmt = (
            select(MorphIndexModel)
            .where(
                MorphIndexModel.table_id == table_id,
                MorphIndexModel.is_active.is_(True),
            )
            .order_by(MorphIndexModel.logical_name)
        )
        result = await self._session.execute(stmt)
        return [self._to_index(model) for model in result.scalars().all()]

    async def soft_delete_index(self, index_id: UUID) -> None:
        await self._session.execute(
            update(MorphIndexModel)
            .where(MorphIndexModel.id == index_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )

    # Relations

    async def insert_relation(self, relation: RelationDescriptor) -> None:
        self._session.add(
            MorphRelationModel(
                id=relation.relation_id,
                tenant_id=relation.tenant_id,
                logical_name=relation.logical_name,
                source_table_id=relation.source_table_id,
                source_column_id=relation.source_column_id,
                target_table_id=relation.target_table_id,
                target_column_id=relation.target_column_id,
                relation_type=relation.relation_type.value,
                on_delete=relation.on_delete.value,
                on_update=relation.on_update.value,
                is_active=True,
            )
        )
        try:
            await self._session.flush()
        except IntegrityError as e:
            raise DuplicateNameError("Relation", relation.logical_name) from e

    async def get_relation_by_id(self, relation_id: UUID) -> RelationDescriptor | None:
        stmt = select(MorphRelationModel).where(
            MorphRelationModel.id == relation_id,
            MorphRelationModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._to_relation(model) if model is not None else None

    async def list_relations(self, tenant_id: UUID) -> list[RelationDescriptor]:
        stmt = (
            select(MorphRelationModel)
            .where(
                MorphRelationModel.tenant_id == tenant_id,
                MorphRelationModel.is_active.is_(True),
            )
            .order_by(MorphRelationModel.logical_name)
        )
        result = await self._session.execute(stmt)
        return [self._to_relation(model) for model in result.scalars().all()]

    async def soft_delete_relation(self, relation_id: UUID) -> None:
        await self._session.execute(
            update(MorphRelationModel)
            .where(MorphRelationModel.id == relation_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )

    # Versions

    async def current_version(self, table_id: UUID) -> int | None:
        stmt = select(MorphTableModel.schema_version).where(
            MorphTableModel.id == table_id,
            MorphTableModel.is_active.is_(True),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def increment_version(self, table_id: UUID) -> int:
        stmt = (
            update(MorphTableModel)
            .where(MorphTableModel.id == table_id, MorphTableModel.is_active.is_(True))
            .values(
                schema_version=MorphTableModel.schema_version + 1,
                updated_at=datetime.now(UTC),
            )
            .returning(MorphTableModel.schema_version)
        )
        result = await self._session.execute(stmt)
        version = result.scalar_one_or_none()
        if version is None:
            raise TableNotFoundError(str(table_id))

        self._probe.version_incremented(table_id=str(table_id), version=version)
        return version

    # Mapping

    async def _to_table(
        self, model: MorphTableModel, include_columns: bool
    ) -> TableDescriptor:
        columns = await self.get_columns(model.id) if include_columns else []
        return TableDescriptor(
            table_id=model.id,
            tenant_id=model.tenant_id,
            logical_name=model.logical_name,
            physical_name=model.physical_name,
            schema_version=model.schema_version,
            descriptor=dict(model.descriptor or {}),
            is_active=model.is_active,
            created_at=model.created_at,
            updated_at=model.updated_at,
            columns=tuple(columns),
        )

    @staticmethod
    def _to_column(model: MorphColumnModel) -> ColumnDescriptor:
        return ColumnDescriptor(
            column_id=model.id,
            table_id=model.table_id,
            logical_name=model.logical_name,
            physical_name=model.physical_name,
            data_type=DataType(model.data_type),
            native_type=model.native_type,
            ordinal_position=model.ordinal_position,
            is_nullable=model.is_nullable,
            is_unique=model.is_unique,
            is_primary_key=model.is_primary_key,
            is_indexed=model.is_indexed,
            is_encrypted=model.is_encrypted,
            default_value=model.default_value,
            check_expression=model.check_expression,
            is_active=model.is_active,
        )

    @staticmethod
    def _to_index(model: MorphIndexModel) -> IndexDescriptor:
        return IndexDescriptor(
            index_id=model.id,
            table_id=model.table_id,
            logical_name=model.logical_name,
            physical_name=model.physical_name,
            columns=tuple(
                IndexColumn(
                    column_id=UUID(c["column_id"]),
                    physical_name=c["physical_name"],
                    direction=SortDirection(c.get("direction", SortDirection.ASCENDING)),
                    nulls_position=NullsPosition(
                        c.get("nulls_position", NullsPosition.LAST)
                    ),
                )
                for c in model.columns
            ),
            index_type=IndexType(model.index_type),
            is_unique=model.is_unique,
            where_clause=model.where_clause,
            is_active=model.is_active,
            created_at=model.created_at,
        )

    @staticmethod
    def _to_relation(model: MorphRelationModel) -> RelationDescriptor:
        return RelationDescriptor(
            relation_id=model.id,
            tenant_id=model.tenant_id,
            logical_name=model.logical_name,
            source_table_id=model.source_table_id,
            source_column_id=model.source_column_id,
            target_table_id=model.target_table_id,
            target_column_id=model.target_column_id,
            relation_type=RelationType(model.relation_type),
            on_delete=ReferentialAction(model.on_delete),
            on_update=ReferentialAction(model.on_update),
            is_active=model.is_active,
            created_at=model.created_at,
        )
