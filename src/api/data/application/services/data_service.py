"""Data application service.

Row-level reads and writes against dynamic tables, addressed by tenant and
logical table name. Every statement is scoped by the tenant column, values
are validated and coerced against the column descriptors before binding,
and physical names never leave this service.

Data operations never take the schema lock; concurrent DDL on the same
table is serialized by PostgreSQL's own table locks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from data.application.observability import (
    DataServiceProbe,
    DefaultDataServiceProbe,
    QueryProbe,
)
from data.application.query_builder import QueryBuilder
from data.domain.query import OutputColumn, TranslatedQuery
from data.domain.value_objects import (
    BatchOperation,
    BatchOperationResult,
    BatchOperationType,
    Row,
)
from data.ports.repositories import IRowRepository, ITableCatalog
from data.ports.translation import IQueryTranslator
from shared_kernel.exceptions import (
    ColumnNotFoundError,
    DataValidationError,
    FieldError,
    MorphError,
    RecordNotFoundError,
    StatementExecutionError,
    TableNotFoundError,
    TenantIsolationError,
    ValidationError,
)
from shared_kernel.schema_primitives import (
    ID_COLUMN,
    TENANT_COLUMN,
    UPDATED_AT_COLUMN,
    ColumnDescriptor,
    TableDescriptor,
    TypeMapper,
)
from shared_kernel.sql.dml import (
    build_batch_update,
    build_bulk_insert,
    build_delete,
    build_id_where_clause,
    build_insert,
    build_select_by_id,
    build_update,
    build_upsert,
)
from shared_kernel.sql.identifiers import quote_identifier, quote_qualified

TENANT_PARAMETER = "tenant"
ID_PARAMETER = "id"


class DataService:
    """Application service for records of dynamic tables."""

    def __init__(
        self,
        session: AsyncSession,
        catalog: ITableCatalog,
        rows: IRowRepository,
        translator: IQueryTranslator,
        probe: DataServiceProbe | None = None,
        query_probe: QueryProbe | None = None,
    ):
        """Initialize DataService with dependencies.

        Args:
            session: Database session for transaction management
            catalog: Resolves logical table names to descriptors
            rows: Executes statements against dynamic tables (same session)
            translator: Translates logical queries and filters
            probe: Optional domain probe for observability
            query_probe: Optional probe handed to query builders
        """
        self._session = session
        self._catalog = catalog
        self._rows = rows
        self._translator = translator
        self._probe = probe or DefaultDataServiceProbe()
        self._query_probe = query_probe

    def query(self, tenant_id: UUID, table: str) -> QueryBuilder:
        """Start a logical query against one of the tenant's tables."""
        return QueryBuilder(
            session=self._session,
            tenant_id=tenant_id,
            table=table,
            catalog=self._catalog,
            rows=self._rows,
            translator=self._translator,
            probe=self._query_probe,
        )

    async def get_by_id(
        self, tenant_id: UUID, table: str, record_id: UUID | str
    ) -> Row | None:
        async with self._session.begin():
            descriptor = await self._require_table(tenant_id, table)
            id_column = self._id_column(descriptor)
            sql = (
                build_select_by_id(
                    descriptor.physical_name, id_column.physical_name, parameter=ID_PARAMETER
                )
                + f" AND {self._tenant_clause(descriptor)}"
            )
            row = await self._rows.fetch_one(
                sql, self._id_parameters(descriptor, tenant_id, record_id)
            )
        return self._to_logical(descriptor, row) if row is not None else None

    async def insert(self, tenant_id: UUID, table: str, data: Mapping[str, Any]) -> Row:
        """Insert one row and return it as stored, defaults included.

        Raises:
            TableNotFoundError: If the table does not exist for the tenant
            DataValidationError: If fields are unknown, invalid, missing or
                violate a unique constraint
            TenantIsolationError: If the row names another tenant
        """
        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                values = self._prepare_insert(descriptor, tenant_id, data)
                row = await self._insert_row(descriptor, values)
        except Exception as e:
            self._failed("insert", table, tenant_id, e)
            raise

        result = self._to_logical(descriptor, row)
        self._probe.record_inserted(
            table=table, record_id=str(result.get(ID_COLUMN)), tenant_id=str(tenant_id)
        )
        return result

    async def update(
        self,
        tenant_id: UUID,
        table: str,
        record_id: UUID | str,
        data: Mapping[str, Any],
    ) -> Row:
        """Update one row by id and return it.

        Primary-key fields are ignored, and ``updated_at`` is set to now
        unless the caller supplies it.

        Raises:
            RecordNotFoundError: If no row with the id exists for the tenant
            DataValidationError: If fields are unknown or invalid
            TenantIsolationError: If the data names another tenant
        """
        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                values = self._prepare_update(descriptor, tenant_id, data)
                assignments = [(column, f"v{i}") for i, column in enumerate(values)]
                parameters = {f"v{i}": value for i, value in enumerate(values.values())}
                parameters.update(self._id_parameters(descriptor, tenant_id, record_id))
                sql = build_update(
                    descriptor.physical_name,
                    assignments,
                    self._id_where(descriptor),
                )
                row = await self._write_returning(descriptor, sql, parameters)
                if row is None:
                    raise RecordNotFoundError(table, str(record_id))
        except Exception as e:
            self._failed("update", table, tenant_id, e)
            raise

        self._probe.record_updated(
            table=table, record_id=str(record_id), tenant_id=str(tenant_id)
        )
        return self._to_logical(descriptor, row)

    async def delete(self, tenant_id: UUID, table: str, record_id: UUID | str) -> bool:
        """Delete one row by id. Returns False when no such row exists."""
        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                sql = build_delete(descriptor.physical_name, self._id_where(descriptor))
                affected = await self._write_count(
                    descriptor, sql, self._id_parameters(descriptor, tenant_id, record_id)
                )
        except Exception as e:
            self._failed("delete", table, tenant_id, e)
            raise

        if affected:
            self._probe.record_deleted(
                table=table, record_id=str(record_id), tenant_id=str(tenant_id)
            )
        return affected > 0

    async def insert_batch(
        self, tenant_id: UUID, table: str, rows: Sequence[Mapping[str, Any]]
    ) -> list[Row]:
        """Insert many rows atomically.

        Every row is validated before anything is written; one invalid row
        rejects the whole batch with errors for every offending field,
        reported as ``rows[i].field``.
        """
        if not rows:
            return []

        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                prepared = self._prepare_batch(descriptor, tenant_id, rows)
                stored = await self._insert_rows(descriptor, prepared)
        except Exception as e:
            self._failed("insert_batch", table, tenant_id, e)
            raise

        self._probe.batch_inserted(table=table, count=len(stored), tenant_id=str(tenant_id))
        return [self._to_logical(descriptor, row) for row in stored]

    async def update_batch(
        self,
        tenant_id: UUID,
        table: str,
        data: Mapping[str, Any],
        where: QueryBuilder,
    ) -> int:
        """Apply the same field values to every row matching a filter.

        Raises:
            ValidationError: If the filter targets another table or tenant,
                or joins other tables
        """
        self._check_filter(tenant_id, table, where)
        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                values = self._prepare_update(descriptor, tenant_id, data)
                condition = self._translator.translate_where(
                    where.spec, descriptor, tenant_id
                )
                assignments = [(column, f"v{i}") for i, column in enumerate(values)]
                parameters = dict(condition.parameters)
                parameters.update({f"v{i}": v for i, v in enumerate(values.values())})
                sql = build_batch_update(descriptor.physical_name, assignments, condition.sql)
                affected = await self._write_count(descriptor, sql, parameters)
        except Exception as e:
            self._failed("update_batch", table, tenant_id, e)
            raise

        self._probe.batch_updated(table=table, count=affected, tenant_id=str(tenant_id))
        return affected

    async def delete_batch(self, tenant_id: UUID, table: str, where: QueryBuilder) -> int:
        self._check_filter(tenant_id, table, where)
        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                condition = self._translator.translate_where(
                    where.spec, descriptor, tenant_id
                )
                sql = build_delete(descriptor.physical_name, condition.sql)
                affected = await self._write_count(descriptor, sql, condition.parameters)
        except Exception as e:
            self._failed("delete_batch", table, tenant_id, e)
            raise

        self._probe.batch_deleted(table=table, count=affected, tenant_id=str(tenant_id))
        return affected

    async def upsert(
        self,
        tenant_id: UUID,
        table: str,
        data: Mapping[str, Any],
        key_columns: Sequence[str],
    ) -> Row:
        """Insert a row, or update the row that conflicts on ``key_columns``.

        The key columns must be covered by a unique constraint or index.
        A conflicting row of another tenant is never overwritten.

        Raises:
            ValidationError: If no key columns are given
            ColumnNotFoundError: If a key column does not exist
            TenantIsolationError: If the conflicting row belongs to another tenant
        """
        if not key_columns:
            raise ValidationError("at least one key column is required", field="key_columns")

        try:
            async with self._session.begin():
                descriptor = await self._require_table(tenant_id, table)
                keys = []
                for name in key_columns:
                    column = descriptor.find_column(name)
                    if column is None:
                        raise ColumnNotFoundError(table, name)
                    keys.append(column.physical_name)

                values = self._prepare_insert(descriptor, tenant_id, data)
                missing = [
                    name for name, physical in zip(key_columns, keys) if physical not in values
                ]
                if missing:
                    raise DataValidationError(
                        [
                            FieldError(name, "key column value is required", "required")
                            for name in missing
                        ]
                    )

                columns = list(values)
                tenant = self._tenant_column(descriptor)
                sql = build_upsert(
                    descriptor.physical_name,
                    columns,
                    [f"v{i}" for i in range(len(columns))],
                    keys,
                ).removesuffix(" RETURNING *")
                sql += (
                    f" WHERE {quote_qualified(descriptor.physical_name, tenant.physical_name)}"
                    f" = EXCLUDED.{quote_identifier(tenant.physical_name)} RETURNING *"
                )
                parameters = {f"v{i}": value for i, value in enumerate(values.values())}
                row = await self._write_returning(descriptor, sql, parameters)
                if row is None:
                    raise TenantIsolationError()
        except Exception as e:
            self._failed("upsert", table, tenant_id, e)
            raise

        result = self._to_logical(descriptor, row)
        self._probe.record_upserted(
            table=table, record_id=str(result.get(ID_COLUMN)), tenant_id=str(tenant_id)
        )
        return result

    async def execute_batch(
        self, tenant_id: UUID, operations: Sequence[BatchOperation]
    ) -> list[BatchOperationResult]:
        """Run a mixed batch with per-operation outcomes.

        Each operation runs in its own transaction, so earlier successes
        stay committed when a later operation fails. Engine errors become
        failed results carrying their code; anything else propagates.
        """
        results: list[BatchOperationResult] = []
        for index, operation in enumerate(operations):
            try:
                results.append(await self._apply(tenant_id, index, operation))
            except MorphError as e:
                results.append(
                    BatchOperationResult(
                        index=index,
                        success=False,
                        error_code=e.code,
                        error_message=e.message,
                    )
                )
        return results

    async def _apply(
        self, tenant_id: UUID, index: int, operation: BatchOperation
    ) -> BatchOperationResult:
        if operation.operation == BatchOperationType.INSERT:
            row = await self.insert(tenant_id, operation.table, operation.data)
            return BatchOperationResult(index=index, success=True, data=row, affected_rows=1)

        if operation.operation == BatchOperationType.UPSERT:
            row = await self.upsert(
                tenant_id, operation.table, operation.data, operation.key_columns
            )
            return BatchOperationResult(index=index, success=True, data=row, affected_rows=1)

        if operation.record_id is None:
            raise ValidationError(
                f"{operation.operation.value} requires a record id", field="record_id"
            )

        if operation.operation == BatchOperationType.UPDATE:
            row = await self.update(
                tenant_id, operation.table, operation.record_id, operation.data
            )
            return BatchOperationResult(index=index, success=True, data=row, affected_rows=1)

        deleted = await self.delete(tenant_id, operation.table, operation.record_id)
        if not deleted:
            raise RecordNotFoundError(operation.table, str(operation.record_id))
        return BatchOperationResult(index=index, success=True, affected_rows=1)

    # Resolution

    async def _require_table(self, tenant_id: UUID, table: str) -> TableDescriptor:
        descriptor = await self._catalog.get_table(tenant_id, table)
        if descriptor is None:
            raise TableNotFoundError(table)
        return descriptor

    @staticmethod
    def _check_filter(tenant_id: UUID, table: str, where: QueryBuilder) -> None:
        if where.table != table:
            raise ValidationError(
                f"filter targets '{where.table}', not '{table}'", field="where"
            )
        if where.tenant_id != tenant_id:
            raise TenantIsolationError()

    @staticmethod
    def _tenant_column(descriptor: TableDescriptor) -> ColumnDescriptor:
        column = descriptor.find_column(TENANT_COLUMN)
        if column is None:
            raise ColumnNotFoundError(descriptor.logical_name, TENANT_COLUMN)
        return column

    @staticmethod
    def _id_column(descriptor: TableDescriptor) -> ColumnDescriptor:
        column = descriptor.primary_key or descriptor.find_column(ID_COLUMN)
        if column is None:
            raise ColumnNotFoundError(descriptor.logical_name, ID_COLUMN)
        return column

    def _tenant_clause(self, descriptor: TableDescriptor) -> str:
        tenant = self._tenant_column(descriptor)
        return f"{quote_identifier(tenant.physical_name)} = :{TENANT_PARAMETER}"

    def _id_where(self, descriptor: TableDescriptor) -> str:
        id_column = self._id_column(descriptor)
        return (
            f"{build_id_where_clause(id_column.physical_name, ID_PARAMETER)}"
            f" AND {self._tenant_clause(descriptor)}"
        )

    def _id_parameters(
        self, descriptor: TableDescriptor, tenant_id: UUID, record_id: UUID | str
    ) -> dict[str, Any]:
        id_column = self._id_column(descriptor)
        try:
            value = TypeMapper.coerce_value(id_column.data_type, record_id)
        except ValueError as e:
            raise ValidationError(str(e), field=id_column.logical_name) from e
        return {ID_PARAMETER: value, TENANT_PARAMETER: tenant_id}

    # Validation

    def _prepare_insert(
        self, descriptor: TableDescriptor, tenant_id: UUID, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Validate row data for insertion, keyed by physical column name.

        Raises:
            DataValidationError: With one error per offending field
            TenantIsolationError: If the row names another tenant
        """
        errors: list[FieldError] = []
        values = self._coerce_fields(descriptor, tenant_id, data, errors)

        for column in descriptor.columns:
            if column.is_system or column.is_nullable or column.default_value is not None:
                continue
            if values.get(column.physical_name) is None and column.logical_name not in {
                e.field for e in errors
            }:
                errors.append(FieldError(column.logical_name, "value is required", "required"))

        if errors:
            raise DataValidationError(errors)

        values[self._tenant_column(descriptor).physical_name] = tenant_id
        return values

    def _prepare_update(
        self, descriptor: TableDescriptor, tenant_id: UUID, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        errors: list[FieldError] = []
        values = self._coerce_fields(descriptor, tenant_id, data, errors, skip_primary_key=True)

        for column in descriptor.columns:
            if (
                column.physical_name in values
                and values[column.physical_name] is None
                and not column.is_nullable
            ):
                errors.append(FieldError(column.logical_name, "value is required", "required"))

        if errors:
            raise DataValidationError(errors)

        updated_at = descriptor.find_column(UPDATED_AT_COLUMN)
        if updated_at is not None and updated_at.physical_name not in values:
            values[updated_at.physical_name] = datetime.now(UTC)
        return values

    def _prepare_batch(
        self,
        descriptor: TableDescriptor,
        tenant_id: UUID,
        rows: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        prepared: list[dict[str, Any]] = []
        errors: list[FieldError] = []
        for i, row in enumerate(rows):
            try:
                prepared.append(self._prepare_insert(descriptor, tenant_id, row))
            except DataValidationError as e:
                errors.extend(
                    FieldError(f"rows[{i}].{fe.field}", fe.message, fe.code) for fe in e.errors
                )
        if errors:
            raise DataValidationError(errors)
        return prepared

    @staticmethod
    def _coerce_fields(
        descriptor: TableDescriptor,
        tenant_id: UUID,
        data: Mapping[str, Any],
        errors: list[FieldError],
        skip_primary_key: bool = False,
    ) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, raw in data.items():
            column = descriptor.find_column(name)
            if column is None:
                errors.append(FieldError(name, f"unknown field '{name}'", "unknown_field"))
                continue

            if column.logical_name == TENANT_COLUMN:
                if raw is not None and str(raw) != str(tenant_id):
                    raise TenantIsolationError()
                continue
            if skip_primary_key and column.is_primary_key:
                continue

            try:
                coerced = TypeMapper.coerce_value(column.data_type, raw)
            except ValueError as e:
                errors.append(FieldError(column.logical_name, str(e), "invalid_value"))
                continue
            values[column.physical_name] = TypeMapper.to_storage_value(
                column.data_type, coerced
            )
        return values

    # Execution

    async def _insert_row(
        self, descriptor: TableDescriptor, values: dict[str, Any]
    ) -> dict[str, Any]:
        columns = list(values)
        parameters = {f"v{i}": value for i, value in enumerate(values.values())}
        sql = build_insert(descriptor.physical_name, columns, list(parameters))
        row = await self._write_returning(descriptor, sql, parameters)
        if row is None:
            raise StatementExecutionError("INSERT returned no row", statement=sql)
        return row

    async def _insert_rows(
        self, descriptor: TableDescriptor, prepared: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert validated rows, as one UNNEST statement when they share columns."""
        columns = list(prepared[0])
        if any(set(row) != set(columns) for row in prepared[1:]):
            return [await self._insert_row(descriptor, row) for row in prepared]

        by_physical = {c.physical_name: c for c in descriptor.columns}
        arrays = [
            f"CAST(:a{i} AS {by_physical[column].native_type}[])"
            for i, column in enumerate(columns)
        ]
        parameters = {
            f"a{i}": [row[column] for row in prepared] for i, column in enumerate(columns)
        }
        sql = build_bulk_insert(descriptor.physical_name, columns, arrays)
        try:
            return await self._rows.fetch_all(sql, parameters)
        except DataValidationError as e:
            raise self._logical_errors(descriptor, e) from e

    async def _write_returning(
        self, descriptor: TableDescriptor, sql: str, parameters: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        try:
            return await self._rows.fetch_one(sql, parameters)
        except DataValidationError as e:
            raise self._logical_errors(descriptor, e) from e

    async def _write_count(
        self, descriptor: TableDescriptor, sql: str, parameters: Mapping[str, Any]
    ) -> int:
        try:
            return await self._rows.execute(sql, parameters)
        except DataValidationError as e:
            raise self._logical_errors(descriptor, e) from e

    @staticmethod
    def _logical_errors(
        descriptor: TableDescriptor, error: DataValidationError
    ) -> DataValidationError:
        """Replace physical column and constraint names with logical names."""

        def logical(field: str) -> str:
            for column in descriptor.columns:
                if field == column.physical_name or field.endswith(f"_{column.physical_name}"):
                    return column.logical_name
            return descriptor.logical_name

        return DataValidationError(
            [FieldError(logical(fe.field), fe.message, fe.code) for fe in error.errors],
            error.message,
        )

    @staticmethod
    def _to_logical(descriptor: TableDescriptor, row: Mapping[str, Any]) -> Row:
        outputs = {
            c.physical_name.lower(): OutputColumn(c.logical_name, c.data_type)
            for c in descriptor.columns
        }
        return TranslatedQuery(sql="", outputs=outputs).map_row(row)

    def _failed(self, operation: str, table: str, tenant_id: UUID, error: Exception) -> None:
        self._probe.data_operation_failed(
            operation=operation, table=table, tenant_id=str(tenant_id), error=str(error)
        )
