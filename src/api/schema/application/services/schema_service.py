"""Schema application service.

Orchestrates every schema mutation as one database transaction:

    validate -> check version -> lock table -> re-check version
             -> run DDL -> persist descriptors -> bump version -> append change log

PostgreSQL DDL is transactional, so a failure at any step rolls back the
physical change, the metadata and the audit record together, and the
transaction-scoped advisory lock is released by the rollback.
"""

from __future__ import annotations

from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.settings import SchemaSettings
from schema.application.observability import (
    DefaultSchemaServiceProbe,
    SchemaServiceProbe,
)
from schema.application.value_objects import (
    AddColumnRequest,
    ColumnSpec,
    CreateIndexRequest,
    CreateRelationRequest,
    CreateTableRequest,
    UpdateColumnRequest,
    UpdateTableRequest,
)
from schema.domain.lock_keys import resource_key, table_resource_key
from schema.domain.validation import (
    validate_column_name,
    validate_expression,
    validate_logical_name,
)
from schema.domain.value_objects import ChangeLogEntry, SchemaOperation
from schema.ports.protocols import IDdlExecutor, ILockCoordinator, SchemaChangeListener
from schema.ports.repositories import IChangeLogRepository, IMetadataRepository
from shared_kernel.exceptions import (
    ColumnNotFoundError,
    ConcurrencyConflictError,
    DuplicateNameError,
    IndexNotFoundError,
    RelationNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared_kernel.schema_primitives import (
    CREATED_AT_COLUMN,
    ID_COLUMN,
    TENANT_COLUMN,
    UPDATED_AT_COLUMN,
    ColumnDescriptor,
    DataType,
    IndexColumn,
    IndexDescriptor,
    PhysicalKind,
    PhysicalNameGenerator,
    RelationDescriptor,
    TableDescriptor,
    TypeMapper,
    new_id,
)
from shared_kernel.sql import ColumnDefinition, ForeignKeyDefinition, IndexDefinition
from shared_kernel.sql.ddl import (
    build_add_column,
    build_add_foreign_key,
    build_add_unique_constraint,
    build_create_index,
    build_create_table,
    build_drop_column,
    build_drop_constraint,
    build_drop_index,
    build_drop_table,
    build_set_default,
)

# (logical name, type, default expression) of the system-managed columns
_SYSTEM_COLUMN_SPECS: tuple[tuple[str, DataType, str | None], ...] = (
    (ID_COLUMN, DataType.UUID, "gen_random_uuid()"),
    (TENANT_COLUMN, DataType.UUID, None),
    (CREATED_AT_COLUMN, DataType.CREATED_TIME, TypeMapper.default_expression(DataType.CREATED_TIME)),
    (UPDATED_AT_COLUMN, DataType.MODIFIED_TIME, TypeMapper.default_expression(DataType.MODIFIED_TIME)),
)


def tenant_index_name(table_physical_name: str) -> str:
    return f"idx_{table_physical_name}_tenant"


def unique_constraint_name(table_physical_name: str, column_physical_name: str) -> str:
    return f"uq_{table_physical_name}_{column_physical_name}"


def column_index_name(table_physical_name: str, column_physical_name: str) -> str:
    return f"idx_{table_physical_name}_{column_physical_name}"


def foreign_key_name(relation: RelationDescriptor) -> str:
    """Reconstruct the physical FK constraint name backing a relation."""
    return PhysicalNameGenerator.constraint_name(
        PhysicalKind.FOREIGN_KEY,
        relation.source_table_id,
        relation.relation_id,
        relation.logical_name,
    )


class SchemaService:
    """Application service for dynamic schema management.

    Scoped to one tenant: every table, column, index and relation it touches
    must belong to that tenant, and objects of other tenants are reported as
    not found rather than forbidden.
    """

    def __init__(
        self,
        session: AsyncSession,
        metadata_repository: IMetadataRepository,
        change_log_repository: IChangeLogRepository,
        lock_coordinator: ILockCoordinator,
        ddl_executor: IDdlExecutor,
        scope_to_tenant: UUID,
        settings: SchemaSettings | None = None,
        probe: SchemaServiceProbe | None = None,
        listeners: Sequence[SchemaChangeListener] = (),
        performed_by: str | None = None,
    ):
        """Initialize SchemaService with dependencies.

        Args:
            session: Database session for transaction management
            metadata_repository: Repository for schema descriptors
            change_log_repository: Repository for the audit trail
            lock_coordinator: Advisory lock coordinator bound to the same session
            ddl_executor: Runs DDL on the same session
            scope_to_tenant: The tenant this service is scoped to
            settings: Schema settings (name limits, history size)
            probe: Optional domain probe for observability
            listeners: Hooks notified after a change has committed
            performed_by: Actor identity recorded in the change log
        """
        self._session = session
        self._metadata = metadata_repository
        self._change_log = change_log_repository
        self._locks = lock_coordinator
        self._ddl = ddl_executor
        self._scope_to_tenant = scope_to_tenant
        self._settings = settings or SchemaSettings()
        self._probe = probe or DefaultSchemaServiceProbe()
        self._listeners = list(listeners)
        self._performed_by = performed_by

    # Tables

    async def create_table(self, request: CreateTableRequest) -> TableDescriptor:
        """Create a table with the system columns plus the requested columns.

        Raises:
            ValidationError: If a name or expression is invalid
            DuplicateNameError: If the tenant already has an active table
                with this name, or the request repeats a column name
            StatementExecutionError: If the database rejects the DDL
        """
        tenant_id = self._scope_to_tenant
        try:
            logical_name = self._validate_name(request.logical_name)
            specs = self._validate_column_specs(request.columns)

            async with self._session.begin():
                # Serializes concurrent creates of the same name in this tenant
                await self._locks.acquire(
                    resource_key("table_name", f"{tenant_id}:{logical_name}")
                )
                existing = await self._metadata.get_table_by_name(
                    tenant_id, logical_name, include_columns=False
                )
                if existing is not None:
                    raise DuplicateNameError("Table", logical_name)

                table_id = new_id()
                physical_name = PhysicalNameGenerator.table_name(
                    tenant_id, table_id, logical_name
                )
                columns = self._build_columns(table_id, specs)
                table = TableDescriptor(
                    table_id=table_id,
                    tenant_id=tenant_id,
                    logical_name=logical_name,
                    physical_name=physical_name,
                    schema_version=1,
                    descriptor=dict(request.descriptor),
                    columns=tuple(columns),
                )

                await self._ddl.execute_all(self._create_table_statements(table))
                await self._metadata.insert_table(table)
                await self._record(
                    table_id,
                    SchemaOperation.CREATE_TABLE,
                    1,
                    {
                        "logical_name": logical_name,
                        "physical_name": physical_name,
                        "column_count": len(columns),
                    },
                )
                created = await self._metadata.get_table_by_id(table_id)

        except Exception as e:
            self._probe.table_creation_failed(
                logical_name=request.logical_name,
                tenant_id=str(tenant_id),
                error=str(e),
            )
            raise

        self._probe.table_created(
            table_id=str(table_id),
            logical_name=logical_name,
            physical_name=physical_name,
            tenant_id=str(tenant_id),
        )
        await self._notify(table_id, SchemaOperation.CREATE_TABLE)
        return created or table

    async def get_table(self, logical_name: str) -> TableDescriptor | None:
        """Get an active table by exact logical name, with its columns."""
        async with self._session.begin():
            return await self._metadata.get_table_by_name(
                self._scope_to_tenant, logical_name, include_columns=True
            )

    async def get_table_by_id(self, table_id: UUID) -> TableDescriptor | None:
        """Get an active table by id, or None if missing or owned by another tenant."""
        async with self._session.begin():
            table = await self._metadata.get_table_by_id(table_id, include_columns=True)
        if table is None or table.tenant_id != self._scope_to_tenant:
            return None
        return table

    async def list_tables(self, include_columns: bool = False) -> list[TableDescriptor]:
        """List the tenant's active tables."""
        async with self._session.begin():
            return await self._metadata.list_tables(
                self._scope_to_tenant, include_columns=include_columns
            )

    async def update_table(self, request: UpdateTableRequest) -> TableDescriptor:
        """Rename a table's logical name. The physical name never changes.

        Raises:
            TableNotFoundError: If the table does not exist in this tenant
            ConcurrencyConflictError: If expected_version is stale
            DuplicateNameError: If the new name is taken
        """
        try:
            new_name = (
                self._validate_name(request.logical_name)
                if request.logical_name is not None
                else None
            )

            async with self._session.begin():
                table = await self._load_table(request.table_id, include_columns=False)
                self._check_version(table, request.expected_version)

                if new_name is not None and new_name != table.logical_name:
                    clash = await self._metadata.get_table_by_name(
                        self._scope_to_tenant, new_name, include_columns=False
                    )
                    if clash is not None and clash.table_id != table.table_id:
                        raise DuplicateNameError("Table", new_name)

                current = await self._lock_and_recheck(
                    table.table_id, request.expected_version
                )

                new_version = current + 1
                await self._metadata.update_table(
                    table.table_id, logical_name=new_name, new_version=new_version
                )
                await self._record(
                    table.table_id,
                    SchemaOperation.UPDATE_TABLE,
                    new_version,
                    {
                        "old_logical_name": table.logical_name,
                        "new_logical_name": new_name or table.logical_name,
                    },
                )
                updated = await self._load_table(table.table_id)

        except Exception as e:
            self._failed(SchemaOperation.UPDATE_TABLE, e, request.table_id)
            raise

        self._probe.table_updated(table_id=str(table.table_id), version=new_version)
        await self._notify(table.table_id, SchemaOperation.UPDATE_TABLE)
        return updated

    async def delete_table(
        self, table_id: UUID, expected_version: int | None = None
    ) -> None:
        """Drop a table's physical storage and mark its descriptor inactive.

        Foreign keys on other tables that point at this table are dropped
        first, and their relations are deactivated.

        Raises:
            TableNotFoundError: If the table does not exist in this tenant
            ConcurrencyConflictError: If expected_version is stale
        """
        try:
            async with self._session.begin():
                table = await self._load_table(table_id, include_columns=False)
                self._check_version(table, expected_version)
                version = await self._lock_and_recheck(table_id, expected_version)

                relations = await self._metadata.list_relations(self._scope_to_tenant)
                for relation in relations:
                    if relation.target_table_id != table_id:
                        continue
                    if relation.source_table_id != table_id:
                        source = await self._metadata.get_table_by_id(
                            relation.source_table_id, include_columns=False
                        )
                        if source is not None:
                            await self._ddl.execute(
                                build_drop_constraint(
                                    source.physical_name, foreign_key_name(relation)
                                )
                            )
                    await self._metadata.soft_delete_relation(relation.relation_id)

                await self._ddl.execute(build_drop_table(table.physical_name))
                await self._record(
                    table_id,
                    SchemaOperation.DELETE_TABLE,
                    version,
                    {
                        "logical_name": table.logical_name,
                        "physical_name": table.physical_name,
                    },
                )
                await self._metadata.soft_delete_table(table_id)

        except Exception as e:
            self._failed(SchemaOperation.DELETE_TABLE, e, table_id)
            raise

        self._probe.table_deleted(table_id=str(table_id), logical_name=table.logical_name)
        await self._notify(table_id, SchemaOperation.DELETE_TABLE)

    # Columns

    async def add_column(self, request: AddColumnRequest) -> ColumnDescriptor:
        """Add a user column to an existing table.

        Raises:
            TableNotFoundError: If the table does not exist in this tenant
            ConcurrencyConflictError: If expected_version is stale
            DuplicateNameError: If the table already has a column with this
                name (case-insensitive)
            StatementExecutionError: If the database rejects the DDL, e.g. a
                unique column over existing duplicate values
        """
        try:
            logical_name = self._validate_column_name(request.logical_name)
            default_value = validate_expression(request.default_value, "default_value")
            check_expression = validate_expression(
                request.check_expression, "check_expression"
            )

            async with self._session.begin():
                table = await self._load_table(request.table_id)
                self._check_version(table, request.expected_version)
                if table.find_column(logical_name) is not None:
                    raise DuplicateNameError("Column", logical_name)

                await self._lock_and_recheck(table.table_id, request.expected_version)

                column_id = new_id()
                column = ColumnDescriptor(
                    column_id=column_id,
                    table_id=table.table_id,
                    logical_name=logical_name,
                    physical_name=PhysicalNameGenerator.column_name(
                        table.table_id, column_id, logical_name
                    ),
                    data_type=request.data_type,
                    native_type=TypeMapper.to_native_type(request.data_type),
                    ordinal_position=await self._metadata.next_ordinal_position(
                        table.table_id
                    ),
                    is_nullable=request.is_nullable,
                    is_unique=request.is_unique,
                    is_indexed=request.is_indexed,
                    default_value=default_value,
                    check_expression=check_expression,
                )

                statements = [
                    build_add_column(
                        table.physical_name, ColumnDefinition.from_descriptor(column)
                    )
                ]
                statements.extend(self._column_constraint_statements(table, column))
                await self._ddl.execute_all(statements)

                await self._metadata.insert_column(column)
                version = await self._metadata.increment_version(table.table_id)
                await self._record(
                    table.table_id,
                    SchemaOperation.ADD_COLUMN,
                    version,
                    {
                        "column_id": str(column_id),
                        "logical_name": logical_name,
                        "physical_name": column.physical_name,
                        "data_type": column.data_type.value,
                    },
                )

        except Exception as e:
            self._failed(SchemaOperation.ADD_COLUMN, e, request.table_id)
            raise

        self._probe.column_added(
            table_id=str(table.table_id),
            column_id=str(column_id),
            logical_name=logical_name,
            version=version,
        )
        await self._notify(table.table_id, SchemaOperation.ADD_COLUMN)
        return column

    async def update_column(self, request: UpdateColumnRequest) -> ColumnDescriptor:
        """Rename a column and/or change its default value.

        Renaming touches metadata only. A new default is also applied to the
        physical column so that stored metadata and the table agree.

        Raises:
            ColumnNotFoundError: If the column does not exist in this tenant
            ConcurrencyConflictError: If expected_version is stale
            DuplicateNameError: If another column already uses the new name
            ValidationError: If a system column would be renamed
        """
        table_id: UUID | None = None
        try:
            new_name = (
                self._validate_column_name(request.logical_name)
                if request.logical_name is not None
                else None
            )
            default_value = validate_expression(request.default_value, "default_value")

            async with self._session.begin():
                column, table = await self._load_column(request.column_id)
                table_id = table.table_id
                self._check_version(table, request.expected_version)

                if new_name is not None and column.is_system:
                    raise ValidationError(
                        "system columns cannot be renamed", field="logical_name"
                    )
                if new_name is not None:
                    clash = table.find_column(new_name)
                    if clash is not None and clash.column_id != column.column_id:
                        raise DuplicateNameError("Column", new_name)

                await self._lock_and_recheck(table.table_id, request.expected_version)

                if default_value is not None:
                    await self._ddl.execute(
                        build_set_default(
                            table.physical_name, column.physical_name, default_value
                        )
                    )
                await self._metadata.update_column(
                    column.column_id,
                    logical_name=new_name,
                    default_value=default_value,
                )
                version = await self._metadata.increment_version(table.table_id)

                changes: dict[str, Any] = {"column_id": str(column.column_id)}
                if new_name is not None:
                    changes["old_logical_name"] = column.logical_name
                    changes["new_logical_name"] = new_name
                if default_value is not None:
                    changes["old_default_value"] = column.default_value
                    changes["new_default_value"] = default_value
                await self._record(
                    table.table_id, SchemaOperation.UPDATE_COLUMN, version, changes
                )
                updated = await self._metadata.get_column_by_id(column.column_id)

        except Exception as e:
            self._failed(SchemaOperation.UPDATE_COLUMN, e, table_id)
            raise

        self._probe.column_updated(
            table_id=str(table.table_id), column_id=str(column.column_id), version=version
        )
        await self._notify(table.table_id, SchemaOperation.UPDATE_COLUMN)
        return updated or column

    async def delete_column(
        self, column_id: UUID, expected_version: int | None = None
    ) -> None:
        """Drop a user column and mark its descriptor inactive.

        Indexes covering the column are dropped by PostgreSQL along with it
        and are deactivated here; relations using it are dropped first.

        Raises:
            ColumnNotFoundError: If the column does not exist in this tenant
            ValidationError: If the column is a system column
            ConcurrencyConflictError: If expected_version is stale
        """
        table_id: UUID | None = None
        try:
            async with self._session.begin():
                column, table = await self._load_column(column_id)
                table_id = table.table_id
                if column.is_system:
                    raise ValidationError(
                        "system columns cannot be deleted", field="column_id"
                    )
                self._check_version(table, expected_version)
                await self._lock_and_recheck(table.table_id, expected_version)

                for relation in await self._metadata.list_relations(self._scope_to_tenant):
                    if column_id not in (relation.source_column_id, relation.target_column_id):
                        continue
                    source = await self._metadata.get_table_by_id(
                        relation.source_table_id, include_columns=False
                    )
                    if source is not None:
                        await self._ddl.execute(
                            build_drop_constraint(
                                source.physical_name, foreign_key_name(relation)
                            )
                        )
                    await self._metadata.soft_delete_relation(relation.relation_id)

                await self._ddl.execute(
                    build_drop_column(table.physical_name, column.physical_name)
                )

                for index in await self._metadata.list_indexes(table.table_id):
                    if any(c.column_id == column_id for c in index.columns):
                        await self._metadata.soft_delete_index(index.index_id)

                await self._metadata.soft_delete_column(column_id)
                version = await self._metadata.increment_version(table.table_id)
                await self._record(
                    table.table_id,
                    SchemaOperation.DELETE_COLUMN,
                    version,
                    {
                        "column_id": str(column_id),
                        "logical_name": column.logical_name,
                        "physical_name": column.physical_name,
                    },
                )

        except Exception as e:
            self._failed(SchemaOperation.DELETE_COLUMN, e, table_id)
            raise

        self._probe.column_deleted(
            table_id=str(table.table_id), column_id=str(column_id), version=version
        )
        await self._notify(table.table_id, SchemaOperation.DELETE_COLUMN)

    # Indexes

    async def create_index(self, request: CreateIndexRequest) -> IndexDescriptor:
        """Create an index over one or more active columns.

        Raises:
            TableNotFoundError: If the table does not exist in this tenant
            ColumnNotFoundError: If a referenced column is not active on the table
            DuplicateNameError: If the table already has an index with this name
        """
        try:
            logical_name = self._validate_name(request.logical_name)
            where_clause = validate_expression(request.where_clause, "where_clause")
            if not request.columns:
                raise ValidationError("at least one column is required", field="columns")

            async with self._session.begin():
                table = await self._load_table(request.table_id)
                self._check_version(table, request.expected_version)

                index_columns = []
                for spec in request.columns:
                    column = table.find_column_by_id(spec.column_id)
                    if column is None:
                        raise ColumnNotFoundError(table.logical_name, str(spec.column_id))
                    index_columns.append(
                        IndexColumn(
                            column_id=column.column_id,
                            physical_name=column.physical_name,
                            direction=spec.direction,
                            nulls_position=spec.nulls_position,
                        )
                    )

                existing = await self._metadata.list_indexes(table.table_id)
                if any(i.logical_name == logical_name for i in existing):
                    raise DuplicateNameError("Index", logical_name)

                await self._lock_and_recheck(table.table_id, request.expected_version)

                index_id = new_id()
                index = IndexDescriptor(
                    index_id=index_id,
                    table_id=table.table_id,
                    logical_name=logical_name,
                    physical_name=PhysicalNameGenerator.index_name(
                        table.table_id, index_id, logical_name
                    ),
                    columns=tuple(index_columns),
                    index_type=request.index_type,
                    is_unique=request.is_unique,
                    where_clause=where_clause,
                )
                await self._ddl.execute(
                    build_create_index(
                        IndexDefinition(
                            physical_name=index.physical_name,
                            table_physical_name=table.physical_name,
                            columns=index.columns,
                            index_type=index.index_type,
                            is_unique=index.is_unique,
                            where_clause=index.where_clause,
                        )
                    )
                )
                await self._metadata.insert_index(index)
                version = await self._metadata.increment_version(table.table_id)
                await self._record(
                    table.table_id,
                    SchemaOperation.CREATE_INDEX,
                    version,
                    {
                        "index_id": str(index_id),
                        "logical_name": logical_name,
                        "physical_name": index.physical_name,
                        "index_type": index.index_type.value,
                        "is_unique": index.is_unique,
                    },
                )
                created = await self._metadata.get_index_by_id(index_id)

        except Exception as e:
            self._failed(SchemaOperation.CREATE_INDEX, e, request.table_id)
            raise

        self._probe.index_created(
            table_id=str(table.table_id), index_id=str(index_id), version=version
        )
        await self._notify(table.table_id, SchemaOperation.CREATE_INDEX)
        return created or index

    async def list_indexes(self, table_id: UUID) -> list[IndexDescriptor]:
        """List a table's active user-defined indexes."""
        async with self._session.begin():
            await self._load_table(table_id, include_columns=False)
            return await self._metadata.list_indexes(table_id)

    async def delete_index(
        self, index_id: UUID, expected_version: int | None = None
    ) -> None:
        """Drop an index and mark its descriptor inactive.

        Raises:
            IndexNotFoundError: If the index does not exist in this tenant
            ConcurrencyConflictError: If expected_version is stale
        """
        table_id: UUID | None = None
        try:
            async with self._session.begin():
                index = await self._metadata.get_index_by_id(index_id)
                if index is None:
                    raise IndexNotFoundError(str(index_id))
                table = await self._metadata.get_table_by_id(
                    index.table_id, include_columns=False
                )
                if table is None or table.tenant_id != self._scope_to_tenant:
                    raise IndexNotFoundError(str(index_id))
                table_id = table.table_id

                self._check_version(table, expected_version)
                await self._lock_and_recheck(table.table_id, expected_version)

                await self._ddl.execute(build_drop_index(index.physical_name))
                await self._metadata.soft_delete_index(index_id)
                version = await self._metadata.increment_version(table.table_id)
                await self._record(
                    table.table_id,
                    SchemaOperation.DELETE_INDEX,
                    version,
                    {
                        "index_id": str(index_id),
                        "logical_name": index.logical_name,
                        "physical_name": index.physical_name,
                    },
                )

        except Exception as e:
            self._failed(SchemaOperation.DELETE_INDEX, e, table_id)
            raise

        self._probe.index_deleted(
            table_id=str(table.table_id), index_id=str(index_id), version=version
        )
        await self._notify(table.table_id, SchemaOperation.DELETE_INDEX)

    # Relations

    async def create_relation(self, request: CreateRelationRequest) -> RelationDescriptor:
        """Create a foreign-key relation from a source column to a target column.

        Both tables are locked in ascending table-id order, whichever side is
        the source, so two relation creations over the same pair can never
        hold one lock each. The source table's version is re-checked under
        its lock and bumped.

        Raises:
            TableNotFoundError: If either table does not exist in this tenant
            ColumnNotFoundError: If either column is not active on its table
            DuplicateNameError: If the tenant already has a relation with this name
            ConcurrencyConflictError: If expected_version (of the source) is stale
        """
        try:
            logical_name = self._validate_name(request.logical_name)

            async with self._session.begin():
                source = await self._load_table(request.source_table_id)
                target = (
                    source
                    if request.target_table_id == source.table_id
                    else await self._load_table(request.target_table_id)
                )
                source_column = source.find_column_by_id(request.source_column_id)
                if source_column is None:
                    raise ColumnNotFoundError(
                        source.logical_name, str(request.source_column_id)
                    )
                target_column = target.find_column_by_id(request.target_column_id)
                if target_column is None:
                    raise ColumnNotFoundError(
                        target.logical_name, str(request.target_column_id)
                    )

                existing = await self._metadata.list_relations(self._scope_to_tenant)
                if any(r.logical_name == logical_name for r in existing):
                    raise DuplicateNameError("Relation", logical_name)

                self._check_version(source, request.expected_version)
                # Both tables are locked in table-id order so that A->B and
                # B->A requests queue on the same first lock.
                for table_id in sorted({source.table_id, target.table_id}, key=str):
                    if table_id == source.table_id:
                        await self._lock_and_recheck(table_id, request.expected_version)
                    else:
                        await self._locks.acquire(
                            table_resource_key(table_id),
                            timeout=self._settings.lock_timeout_seconds,
                        )

                relation = RelationDescriptor(
                    relation_id=new_id(),
                    tenant_id=self._scope_to_tenant,
                    logical_name=logical_name,
                    source_table_id=source.table_id,
                    source_column_id=source_column.column_id,
                    target_table_id=target.table_id,
                    target_column_id=target_column.column_id,
                    relation_type=request.relation_type,
                    on_delete=request.on_delete,
                    on_update=request.on_update,
                )
                constraint_name = foreign_key_name(relation)
                await self._ddl.execute(
                    build_add_foreign_key(
                        ForeignKeyDefinition(
                            constraint_name=constraint_name,
                            source_table=source.physical_name,
                            source_column=source_column.physical_name,
                            target_table=target.physical_name,
                            target_column=target_column.physical_name,
                            on_delete=relation.on_delete,
                            on_update=relation.on_update,
                        )
                    )
                )
                await self._metadata.insert_relation(relation)
                version = await self._metadata.increment_version(source.table_id)
                await self._record(
                    source.table_id,
                    SchemaOperation.CREATE_RELATION,
                    version,
                    {
                        "relation_id": str(relation.relation_id),
                        "logical_name": logical_name,
                        "constraint_name": constraint_name,
                        "target_table_id": str(target.table_id),
                        "relation_type": relation.relation_type.value,
                    },
                )
                created = await self._metadata.get_relation_by_id(relation.relation_id)

        except Exception as e:
            self._failed(SchemaOperation.CREATE_RELATION, e, request.source_table_id)
            raise

        self._probe.relation_created(
            relation_id=str(relation.relation_id),
            source_table_id=str(source.table_id),
            target_table_id=str(target.table_id),
        )
        await self._notify(source.table_id, SchemaOperation.CREATE_RELATION)
        return created or relation

    async def delete_relation(
        self, relation_id: UUID, expected_version: int | None = None
    ) -> None:
        """Drop a relation's foreign key and mark the relation inactive.

        Raises:
            RelationNotFoundError: If the relation does not exist in this tenant
            ConcurrencyConflictError: If expected_version (of the source) is stale
        """
        table_id: UUID | None = None
        try:
            async with self._session.begin():
                relation = await self._metadata.get_relation_by_id(relation_id)
                if relation is None or relation.tenant_id != self._scope_to_tenant:
                    raise RelationNotFoundError(str(relation_id))
                table_id = relation.source_table_id

                source = await self._load_table(relation.source_table_id, include_columns=False)
                self._check_version(source, expected_version)
                await self._lock_and_recheck(source.table_id, expected_version)

                await self._ddl.execute(
                    build_drop_constraint(source.physical_name, foreign_key_name(relation))
                )
                await self._metadata.soft_delete_relation(relation_id)
                version = await self._metadata.increment_version(source.table_id)
                await self._record(
                    source.table_id,
                    SchemaOperation.DELETE_RELATION,
                    version,
                    {
                        "relation_id": str(relation_id),
                        "logical_name": relation.logical_name,
                    },
                )

        except Exception as e:
            self._failed(SchemaOperation.DELETE_RELATION, e, table_id)
            raise

        self._probe.relation_deleted(
            relation_id=str(relation_id), source_table_id=str(source.table_id)
        )
        await self._notify(source.table_id, SchemaOperation.DELETE_RELATION)

    async def list_relations(self) -> list[RelationDescriptor]:
        """List the tenant's active relations."""
        async with self._session.begin():
            return await self._metadata.list_relations(self._scope_to_tenant)

    # Audit

    async def get_history(
        self, table_id: UUID, limit: int | None = None
    ) -> list[ChangeLogEntry]:
        """Return the newest change log entries for a table, newest first.

        Raises:
            TableNotFoundError: If the table does not exist in this tenant
            ValidationError: If limit is not positive
        """
        limit = self._settings.history_default_limit if limit is None else limit
        if limit < 1:
            raise ValidationError("must be at least 1", field="limit")

        async with self._session.begin():
            await self._load_table(table_id, include_columns=False)
            return await self._change_log.get_history(table_id, limit=limit)

    # Helpers

    def _validate_name(self, name: str) -> str:
        return validate_logical_name(
            name, max_length=self._settings.max_logical_name_length
        )

    def _validate_column_name(self, name: str) -> str:
        return validate_column_name(
            name, max_length=self._settings.max_logical_name_length
        )

    def _validate_column_specs(self, specs: Sequence[ColumnSpec]) -> list[ColumnSpec]:
        seen: set[str] = set()
        validated = []
        for spec in specs:
            name = self._validate_column_name(spec.logical_name)
            if name.lower() in seen:
                raise DuplicateNameError("Column", name)
            seen.add(name.lower())
            validated.append(
                ColumnSpec(
                    logical_name=name,
                    data_type=spec.data_type,
                    is_nullable=spec.is_nullable,
                    is_unique=spec.is_unique,
                    is_primary_key=spec.is_primary_key,
                    is_indexed=spec.is_indexed,
                    default_value=validate_expression(spec.default_value, "default_value"),
                    check_expression=validate_expression(
                        spec.check_expression, "check_expression"
                    ),
                )
            )
        return validated

    @staticmethod
    def _build_columns(
        table_id: UUID, specs: Sequence[ColumnSpec]
    ) -> list[ColumnDescriptor]:
        """System columns first, then user columns, with ordinals from 1."""
        columns = []
        for position, (name, data_type, default) in enumerate(_SYSTEM_COLUMN_SPECS, start=1):
            column_id = new_id()
            columns.append(
                ColumnDescriptor(
                    column_id=column_id,
                    table_id=table_id,
                    logical_name=name,
                    physical_name=PhysicalNameGenerator.column_name(
                        table_id, column_id, name
                    ),
                    data_type=data_type,
                    native_type=TypeMapper.to_native_type(data_type),
                    ordinal_position=position,
                    is_nullable=False,
                    is_primary_key=name == ID_COLUMN,
                    default_value=default,
                )
            )

        for position, spec in enumerate(specs, start=len(columns) + 1):
            column_id = new_id()
            columns.append(
                ColumnDescriptor(
                    column_id=column_id,
                    table_id=table_id,
                    logical_name=spec.logical_name,
                    physical_name=PhysicalNameGenerator.column_name(
                        table_id, column_id, spec.logical_name
                    ),
                    data_type=spec.data_type,
                    native_type=TypeMapper.to_native_type(spec.data_type),
                    ordinal_position=position,
                    is_nullable=spec.is_nullable,
                    is_unique=spec.is_unique,
                    is_primary_key=spec.is_primary_key,
                    is_indexed=spec.is_indexed,
                    default_value=spec.default_value
                    or TypeMapper.default_expression(spec.data_type),
                    check_expression=spec.check_expression,
                )
            )
        return columns

    def _create_table_statements(self, table: TableDescriptor) -> list[str]:
        statements = [
            build_create_table(
                table.physical_name,
                [ColumnDefinition.from_descriptor(c) for c in table.columns],
            )
        ]
        tenant_column = table.find_column(TENANT_COLUMN)
        if tenant_column is not None:
            statements.append(
                build_create_index(
                    IndexDefinition(
                        physical_name=tenant_index_name(table.physical_name),
                        table_physical_name=table.physical_name,
                        columns=[
                            IndexColumn(
                                column_id=tenant_column.column_id,
                                physical_name=tenant_column.physical_name,
                            )
                        ],
                    )
                )
            )
        for column in table.columns:
            if column.is_system:
                continue
            statements.extend(self._column_constraint_statements(table, column))
        return statements

    @staticmethod
    def _column_constraint_statements(
        table: TableDescriptor, column: ColumnDescriptor
    ) -> list[str]:
        """Unique constraint or secondary index requested for a user column."""
        if column.is_primary_key:
            return []
        if column.is_unique:
            return [
                build_add_unique_constraint(
                    table.physical_name,
                    unique_constraint_name(table.physical_name, column.physical_name),
                    column.physical_name,
                )
            ]
        if column.is_indexed:
            return [
                build_create_index(
                    IndexDefinition(
                        physical_name=column_index_name(
                            table.physical_name, column.physical_name
                        ),
                        table_physical_name=table.physical_name,
                        columns=[
                            IndexColumn(
                                column_id=column.column_id,
                                physical_name=column.physical_name,
                            )
                        ],
                        index_type=TypeMapper.recommended_index_type(column.data_type),
                    )
                )
            ]
        return []

    async def _load_table(
        self, table_id: UUID, include_columns: bool = True
    ) -> TableDescriptor:
        table = await self._metadata.get_table_by_id(table_id, include_columns=include_columns)
        # Other tenants' tables are reported as missing, not forbidden
        if table is None or table.tenant_id != self._scope_to_tenant:
            raise TableNotFoundError(str(table_id))
        return table

    async def _load_column(
        self, column_id: UUID
    ) -> tuple[ColumnDescriptor, TableDescriptor]:
        column = await self._metadata.get_column_by_id(column_id)
        if column is None:
            raise ColumnNotFoundError("unknown", str(column_id))
        table = await self._metadata.get_table_by_id(column.table_id, include_columns=True)
        if table is None or table.tenant_id != self._scope_to_tenant:
            raise ColumnNotFoundError("unknown", str(column_id))
        return column, table

    def _check_version(self, table: TableDescriptor, expected: int | None) -> None:
        if expected is None or table.schema_version == expected:
            return
        self._probe.version_conflict(
            table_id=str(table.table_id), expected=expected, actual=table.schema_version
        )
        raise ConcurrencyConflictError(expected, table.schema_version)

    async def _lock_and_recheck(self, table_id: UUID, expected: int | None) -> int:
        """Take the table lock, then re-read the version under it.

        The first check is an optimistic read; this one is authoritative
        because no other mutation of the table can run while the lock is held.

        Returns:
            The current schema version
        """
        await self._locks.acquire(
            table_resource_key(table_id), timeout=self._settings.lock_timeout_seconds
        )
        actual = await self._metadata.current_version(table_id)
        if actual is None:
            raise TableNotFoundError(str(table_id))
        if expected is not None and actual != expected:
            self._probe.version_conflict(
                table_id=str(table_id), expected=expected, actual=actual
            )
            raise ConcurrencyConflictError(expected, actual)
        return actual

    async def _record(
        self,
        table_id: UUID,
        operation: SchemaOperation,
        version: int,
        changes: dict[str, Any],
    ) -> ChangeLogEntry:
        return await self._change_log.append(
            ChangeLogEntry(
                change_id=new_id(),
                table_id=table_id,
                operation=operation,
                schema_version=version,
                changes=changes,
                performed_by=self._performed_by,
            )
        )

    def _failed(
        self, operation: SchemaOperation, error: Exception, table_id: UUID | None
    ) -> None:
        self._probe.schema_operation_failed(
            operation=operation.value,
            error=str(error),
            table_id=str(table_id) if table_id is not None else None,
        )

    async def _notify(self, table_id: UUID, operation: SchemaOperation) -> None:
        """Tell listeners about a committed change.

        The change is already durable, so a failing listener is reported
        and the remaining listeners still run.
        """
        for listener in self._listeners:
            try:
                await listener.on_schema_changed(
                    self._scope_to_tenant, table_id, operation
                )
            except Exception as e:
                self._probe.schema_listener_failed(
                    operation=operation.value, table_id=str(table_id), error=str(e)
                )
