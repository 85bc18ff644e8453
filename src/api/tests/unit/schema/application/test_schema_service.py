"""Unit tests for SchemaService.

Repositories, the lock coordinator and the DDL executor are autospecced
mocks; the tests check orchestration order, version handling and tenant
scoping rather than SQL.
"""

import asyncio
from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock, create_autospec

import pytest

from infrastructure.settings import SchemaSettings
from schema.application.observability import SchemaServiceProbe
from schema.application.services import SchemaService
from schema.application.value_objects import (
    AddColumnRequest,
    ColumnSpec,
    CreateIndexRequest,
    CreateRelationRequest,
    CreateTableRequest,
    IndexColumnSpec,
    UpdateColumnRequest,
    UpdateTableRequest,
)
from schema.domain.value_objects import SchemaOperation
from schema.ports.protocols import IDdlExecutor, ILockCoordinator, SchemaChangeListener
from schema.ports.repositories import IChangeLogRepository, IMetadataRepository
from shared_kernel.exceptions import (
    ColumnNotFoundError,
    ConcurrencyConflictError,
    DuplicateNameError,
    IndexNotFoundError,
    LockAcquisitionTimeoutError,
    RelationNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from shared_kernel.schema_primitives import (
    DataType,
    IndexColumn,
    IndexDescriptor,
    RelationDescriptor,
    RelationType,
    TypeMapper,
    new_id,
)
from tests.unit.conftest import OTHER_TENANT_ID, TENANT_ID, build_table


@pytest.fixture
def metadata():
    repo = create_autospec(IMetadataRepository, instance=True)
    repo.list_relations.return_value = []
    repo.list_indexes.return_value = []
    return repo


@pytest.fixture
def change_log():
    return create_autospec(IChangeLogRepository, instance=True)


@pytest.fixture
def locks():
    return create_autospec(ILockCoordinator, instance=True)


@pytest.fixture
def ddl():
    return create_autospec(IDdlExecutor, instance=True)


@pytest.fixture
def probe():
    return create_autospec(SchemaServiceProbe, instance=True)


@pytest.fixture
def listener():
    hook = create_autospec(SchemaChangeListener, instance=True)
    hook.on_schema_changed = AsyncMock()
    return hook


@pytest.fixture
def service(mock_session, metadata, change_log, locks, ddl, probe, listener):
    return SchemaService(
        session=mock_session,
        metadata_repository=metadata,
        change_log_repository=change_log,
        lock_coordinator=locks,
        ddl_executor=ddl,
        scope_to_tenant=TENANT_ID,
        settings=SchemaSettings(history_default_limit=25),
        probe=probe,
        listeners=[listener],
        performed_by="user-1",
    )


@pytest.fixture
def table():
    return build_table("orders", [("status", DataType.TEXT)], schema_version=3)


def _logged(change_log, index=-1):
    return change_log.append.call_args_list[index].args[0]


class TestCreateTable:
    """Tests for SchemaService.create_table."""

    @pytest.mark.asyncio
    async def test_creates_table_with_system_columns(
        self, service, metadata, change_log, ddl, locks, probe, listener, mock_session
    ):
        """System columns come first, then user columns, all in one transaction."""
        metadata.get_table_by_name.return_value = None
        metadata.get_table_by_id.return_value = None

        table = await service.create_table(
            CreateTableRequest(
                logical_name=" Orders ",
                columns=(
                    ColumnSpec("status", DataType.TEXT, is_nullable=False),
                    ColumnSpec("total", DataType.DECIMAL),
                ),
            )
        )

        assert table.logical_name == "Orders"
        assert table.tenant_id == TENANT_ID
        assert table.schema_version == 1
        assert table.physical_name.startswith("tbl_")
        assert [c.logical_name for c in table.columns] == [
            "id",
            "tenant_id",
            "created_at",
            "updated_at",
            "status",
            "total",
        ]
        assert [c.ordinal_position for c in table.columns] == [1, 2, 3, 4, 5, 6]

        mock_session.begin.assert_called_once()
        locks.acquire.assert_awaited_once_with(f"table_name:{TENANT_ID}:Orders")
        statements = ddl.execute_all.call_args.args[0]
        assert statements[0].startswith(f'CREATE TABLE "{table.physical_name}"')
        assert any("_tenant" in s and "CREATE INDEX" in s for s in statements)
        metadata.insert_table.assert_awaited_once_with(table)

        entry = _logged(change_log)
        assert entry.operation == SchemaOperation.CREATE_TABLE
        assert entry.schema_version == 1
        assert entry.performed_by == "user-1"
        probe.table_created.assert_called_once()
        listener.on_schema_changed.assert_awaited_once_with(
            TENANT_ID, table.table_id, SchemaOperation.CREATE_TABLE
        )

    @pytest.mark.asyncio
    async def test_unique_column_gets_constraint(self, service, metadata, ddl):
        metadata.get_table_by_name.return_value = None
        metadata.get_table_by_id.return_value = None

        await service.create_table(
            CreateTableRequest(
                logical_name="users",
                columns=(ColumnSpec("email", DataType.EMAIL, is_unique=True),),
            )
        )

        statements = ddl.execute_all.call_args.args[0]
        assert any("UNIQUE" in s and '"uq_' in s for s in statements)

    @pytest.mark.asyncio
    async def test_rejects_duplicate_table_name(self, service, metadata, ddl, probe, table):
        """An active table with the same name in the tenant is a conflict."""
        metadata.get_table_by_name.return_value = table

        with pytest.raises(DuplicateNameError):
            await service.create_table(CreateTableRequest(logical_name="orders"))

        ddl.execute_all.assert_not_awaited()
        probe.table_creation_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejects_reserved_column_name(self, service, mock_session):
        """Validation fails before any transaction is opened."""
        with pytest.raises(ValidationError):
            await service.create_table(
                CreateTableRequest(
                    logical_name="orders", columns=(ColumnSpec("id", DataType.UUID),)
                )
            )

        mock_session.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejects_repeated_column_names(self, service):
        with pytest.raises(DuplicateNameError):
            await service.create_table(
                CreateTableRequest(
                    logical_name="orders",
                    columns=(
                        ColumnSpec("Status", DataType.TEXT),
                        ColumnSpec("status", DataType.TEXT),
                    ),
                )
            )

    @pytest.mark.asyncio
    async def test_ddl_failure_skips_metadata(self, service, metadata, ddl, change_log):
        """If the database rejects the DDL nothing is persisted."""
        metadata.get_table_by_name.return_value = None
        ddl.execute_all.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await service.create_table(CreateTableRequest(logical_name="orders"))

        metadata.insert_table.assert_not_awaited()
        change_log.append.assert_not_awaited()


class TestReadTables:
    @pytest.mark.asyncio
    async def test_get_table_by_id_hides_other_tenants(self, service, metadata):
        """Tables of another tenant are reported as missing."""
        metadata.get_table_by_id.return_value = build_table(
            "orders", [], tenant_id=OTHER_TENANT_ID
        )

        assert await service.get_table_by_id(new_id()) is None

    @pytest.mark.asyncio
    async def test_get_table_scopes_lookup_to_tenant(self, service, metadata, table):
        metadata.get_table_by_name.return_value = table

        assert await service.get_table("orders") is table
        metadata.get_table_by_name.assert_awaited_once_with(
            TENANT_ID, "orders", include_columns=True
        )

    @pytest.mark.asyncio
    async def test_list_tables(self, service, metadata, table):
        metadata.list_tables.return_value = [table]

        assert await service.list_tables() == [table]
        metadata.list_tables.assert_awaited_once_with(TENANT_ID, include_columns=False)


class TestUpdateTable:
    """Tests for renaming tables with optimistic concurrency."""

    @pytest.mark.asyncio
    async def test_renames_and_bumps_version(self, service, metadata, change_log, table):
        metadata.get_table_by_id.return_value = table
        metadata.get_table_by_name.return_value = None
        metadata.current_version.return_value = 3

        await service.update_table(
            UpdateTableRequest(table_id=table.table_id, expected_version=3, logical_name="sales")
        )

        metadata.update_table.assert_awaited_once_with(
            table.table_id, logical_name="sales", new_version=4
        )
        entry = _logged(change_log)
        assert entry.changes == {"old_logical_name": "orders", "new_logical_name": "sales"}
        assert entry.schema_version == 4

    @pytest.mark.asyncio
    async def test_stale_version_fails_before_locking(self, service, metadata, locks, probe, table):
        """A stale token is rejected on the optimistic read."""
        metadata.get_table_by_id.return_value = table

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await service.update_table(
                UpdateTableRequest(table_id=table.table_id, expected_version=2)
            )

        assert exc_info.value.actual_version == 3
        locks.acquire.assert_not_awaited()
        probe.version_conflict.assert_called_once()

    @pytest.mark.asyncio
    async def test_version_rechecked_under_lock(self, service, metadata, locks, table):
        """A concurrent change between read and lock is still detected."""
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 4

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await service.update_table(
                UpdateTableRequest(table_id=table.table_id, expected_version=3)
            )

        assert exc_info.value.actual_version == 4
        locks.acquire.assert_awaited_once()
        metadata.update_table.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rename_to_taken_name(self, service, metadata, table):
        metadata.get_table_by_id.return_value = table
        metadata.get_table_by_name.return_value = build_table("sales", [])

        with pytest.raises(DuplicateNameError):
            await service.update_table(
                UpdateTableRequest(table_id=table.table_id, expected_version=3, logical_name="sales")
            )

    @pytest.mark.asyncio
    async def test_other_tenant_table_not_found(self, service, metadata):
        metadata.get_table_by_id.return_value = build_table(
            "orders", [], tenant_id=OTHER_TENANT_ID
        )

        with pytest.raises(TableNotFoundError):
            await service.update_table(UpdateTableRequest(table_id=new_id(), expected_version=1))


class TestDeleteTable:
    @pytest.mark.asyncio
    async def test_drops_inbound_foreign_keys_first(
        self, service, metadata, ddl, change_log, table
    ):
        """Foreign keys on other tables pointing here are dropped before the table."""
        source = build_table("lines", [("order_id", DataType.UUID)])
        relation = RelationDescriptor(
            relation_id=new_id(),
            tenant_id=TENANT_ID,
            logical_name="line_order",
            source_table_id=source.table_id,
            source_column_id=source.find_column("order_id").column_id,
            target_table_id=table.table_id,
            target_column_id=table.primary_key.column_id,
            relation_type=RelationType.ONE_TO_MANY,
        )

        async def by_id(table_id, include_columns=True):
            return {table.table_id: table, source.table_id: source}.get(table_id)

        metadata.get_table_by_id.side_effect = by_id
        metadata.current_version.return_value = 3
        metadata.list_relations.return_value = [relation]

        await service.delete_table(table.table_id, expected_version=3)

        first, second = [c.args[0] for c in ddl.execute.call_args_list]
        assert first.startswith(f'ALTER TABLE "{source.physical_name}" DROP CONSTRAINT')
        assert second == f'DROP TABLE IF EXISTS "{table.physical_name}"'
        metadata.soft_delete_relation.assert_awaited_once_with(relation.relation_id)
        metadata.soft_delete_table.assert_awaited_once_with(table.table_id)
        assert _logged(change_log).operation == SchemaOperation.DELETE_TABLE


class TestColumns:
    """Tests for add, update and delete column."""

    @pytest.mark.asyncio
    async def test_add_column(self, service, metadata, ddl, change_log, probe, table):
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 3
        metadata.next_ordinal_position.return_value = 6
        metadata.increment_version.return_value = 4

        column = await service.add_column(
            AddColumnRequest(
                table_id=table.table_id,
                expected_version=3,
                logical_name="total",
                data_type=DataType.DECIMAL,
                is_indexed=True,
            )
        )

        assert column.ordinal_position == 6
        assert column.native_type == TypeMapper.to_native_type(DataType.DECIMAL)
        statements = ddl.execute_all.call_args.args[0]
        assert statements[0].startswith(f'ALTER TABLE "{table.physical_name}" ADD COLUMN')
        assert statements[1].startswith("CREATE INDEX")
        metadata.insert_column.assert_awaited_once_with(column)
        assert _logged(change_log).schema_version == 4
        probe.column_added.assert_called_once()

    @pytest.mark.asyncio
    async def test_add_column_duplicate_is_case_insensitive(self, service, metadata, table):
        metadata.get_table_by_id.return_value = table

        with pytest.raises(DuplicateNameError):
            await service.add_column(
                AddColumnRequest(
                    table_id=table.table_id,
                    expected_version=3,
                    logical_name="STATUS",
                    data_type=DataType.TEXT,
                )
            )

    @pytest.mark.asyncio
    async def test_update_column_default_is_applied_physically(
        self, service, metadata, ddl, table
    ):
        column = table.find_column("status")
        metadata.get_column_by_id.return_value = column
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 3
        metadata.increment_version.return_value = 4

        await service.update_column(
            UpdateColumnRequest(
                column_id=column.column_id, expected_version=3, default_value="'open'"
            )
        )

        ddl.execute.assert_awaited_once()
        assert "SET DEFAULT 'open'" in ddl.execute.call_args.args[0]
        metadata.update_column.assert_awaited_once_with(
            column.column_id, logical_name=None, default_value="'open'"
        )

    @pytest.mark.asyncio
    async def test_rename_is_metadata_only(self, service, metadata, ddl, table):
        """Renaming a column never touches the physical table."""
        column = table.find_column("status")
        metadata.get_column_by_id.return_value = column
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 3

        await service.update_column(
            UpdateColumnRequest(column_id=column.column_id, expected_version=3, logical_name="state")
        )

        ddl.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_system_column_cannot_be_deleted(self, service, metadata, ddl, table):
        column = table.find_column("tenant_id")
        metadata.get_column_by_id.return_value = column
        metadata.get_table_by_id.return_value = table

        with pytest.raises(ValidationError):
            await service.delete_column(column.column_id)

        ddl.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_column_deactivates_covering_indexes(self, service, metadata, ddl, table):
        column = table.find_column("status")
        index = IndexDescriptor(
            index_id=new_id(),
            table_id=table.table_id,
            logical_name="by_status",
            physical_name="idx_by_status",
            columns=(IndexColumn(column.column_id, column.physical_name),),
        )
        metadata.get_column_by_id.return_value = column
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 3
        metadata.list_indexes.return_value = [index]

        await service.delete_column(column.column_id)

        assert "DROP COLUMN" in ddl.execute.call_args.args[0]
        metadata.soft_delete_index.assert_awaited_once_with(index.index_id)
        metadata.soft_delete_column.assert_awaited_once_with(column.column_id)

    @pytest.mark.asyncio
    async def test_unknown_column(self, service, metadata):
        metadata.get_column_by_id.return_value = None

        with pytest.raises(ColumnNotFoundError):
            await service.delete_column(new_id())


class TestIndexes:
    @pytest.mark.asyncio
    async def test_create_index(self, service, metadata, ddl, table):
        column = table.find_column("status")
        metadata.get_table_by_id.return_value = table
        metadata.current_version.return_value = 3
        metadata.get_index_by_id.return_value = None

        index = await service.create_index(
            CreateIndexRequest(
                table_id=table.table_id,
                logical_name="by_status",
                columns=(IndexColumnSpec(column.column_id),),
                is_unique=True,
            )
        )

        assert index.physical_name.startswith("idx_")
        assert ddl.execute.call_args.args[0].startswith("CREATE UNIQUE INDEX")
        metadata.insert_index.assert_awaited_once_with(index)

    @pytest.mark.asyncio
    async def test_create_index_requires_columns(self, service):
        with pytest.raises(ValidationError):
            await service.create_index(
                CreateIndexRequest(table_id=new_id(), logical_name="empty", columns=())
            )

    @pytest.mark.asyncio
    async def test_create_index_unknown_column(self, service, metadata, table):
        metadata.get_table_by_id.return_value = table

        with pytest.raises(ColumnNotFoundError):
            await service.create_index(
                CreateIndexRequest(
                    table_id=table.table_id,
                    logical_name="bad",
                    columns=(IndexColumnSpec(new_id()),),
                )
            )

    @pytest.mark.asyncio
    async def test_delete_index_of_other_tenant(self, service, metadata):
        other = build_table("orders", [], tenant_id=OTHER_TENANT_ID)
        metadata.get_index_by_id.return_value = IndexDescriptor(
            index_id=new_id(),
            table_id=other.table_id,
            logical_name="x",
            physical_name="idx_x",
            columns=(),
        )
        metadata.get_table_by_id.return_value = other

        with pytest.raises(IndexNotFoundError):
            await service.delete_index(new_id())


class TestRelations:
    @pytest.mark.asyncio
    async def test_create_relation_locks_both_tables_in_id_order(
        self, service, metadata, locks, ddl
    ):
        """Both tables are locked, lowest table id first."""
        source = build_table("lines", [("order_id", DataType.UUID)])
        target = build_table("orders", [])

        async def by_id(table_id, include_columns=True):
            return {source.table_id: source, target.table_id: target}.get(table_id)

        metadata.get_table_by_id.side_effect = by_id
        metadata.current_version.return_value = 1
        metadata.get_relation_by_id.return_value = None

        relation = await service.create_relation(
            CreateRelationRequest(
                logical_name="line_order",
                source_table_id=source.table_id,
                source_column_id=source.find_column("order_id").column_id,
                target_table_id=target.table_id,
                target_column_id=target.primary_key.column_id,
            )
        )

        keys = [c.args[0] for c in locks.acquire.call_args_list]
        first, second = sorted([source.table_id, target.table_id], key=str)
        assert keys == [f"table:{first}", f"table:{second}"]
        assert "FOREIGN KEY" in ddl.execute.call_args.args[0]
        assert relation.tenant_id == TENANT_ID
        metadata.increment_version.assert_awaited_once_with(source.table_id)

    @pytest.mark.asyncio
    async def test_reversed_relation_takes_locks_in_same_order(
        self, service, metadata, locks
    ):
        """Swapping source and target does not change the lock order."""
        lines = build_table("lines", [("order_id", DataType.UUID)])
        orders = build_table("orders", [("line_id", DataType.UUID)])

        async def by_id(table_id, include_columns=True):
            return {lines.table_id: lines, orders.table_id: orders}.get(table_id)

        metadata.get_table_by_id.side_effect = by_id
        metadata.current_version.return_value = 1
        metadata.get_relation_by_id.return_value = None

        await service.create_relation(
            CreateRelationRequest(
                logical_name="line_order",
                source_table_id=lines.table_id,
                source_column_id=lines.find_column("order_id").column_id,
                target_table_id=orders.table_id,
                target_column_id=orders.primary_key.column_id,
            )
        )
        forward = [c.args[0] for c in locks.acquire.call_args_list]
        locks.acquire.reset_mock()

        await service.create_relation(
            CreateRelationRequest(
                logical_name="order_line",
                source_table_id=orders.table_id,
                source_column_id=orders.find_column("line_id").column_id,
                target_table_id=lines.table_id,
                target_column_id=lines.primary_key.column_id,
            )
        )
        backward = [c.args[0] for c in locks.acquire.call_args_list]

        assert forward == backward
        assert metadata.current_version.await_args_list[-1].args == (orders.table_id,)

    @pytest.mark.asyncio
    async def test_opposite_relations_created_concurrently_both_succeed(
        self, metadata, change_log, ddl
    ):
        """A->B and B->A running together serialize instead of timing out."""
        lines = build_table("lines", [("order_id", DataType.UUID)])
        orders = build_table("orders", [("line_id", DataType.UUID)])

        async def by_id(table_id, include_columns=True):
            return {lines.table_id: lines, orders.table_id: orders}.get(table_id)

        metadata.get_table_by_id.side_effect = by_id
        metadata.current_version.return_value = 1
        metadata.get_relation_by_id.return_value = None

        held: dict[str, object] = {}

        def build_service(owner: str) -> SchemaService:
            session = AsyncMock()
            transaction = MagicMock()
            transaction.__aenter__ = AsyncMock(return_value=None)

            async def release(*exc_info):
                for key in [k for k, o in held.items() if o == owner]:
                    del held[key]

            transaction.__aexit__ = AsyncMock(side_effect=release)
            session.begin = MagicMock(return_value=transaction)

            coordinator = create_autospec(ILockCoordinator, instance=True)

            async def acquire(resource_key, timeout=None):
                for _ in range(50):
                    if held.setdefault(resource_key, owner) == owner:
                        await asyncio.sleep(0)
                        return None
                    await asyncio.sleep(0)
                raise LockAcquisitionTimeoutError(resource_key, timeout or 0)

            coordinator.acquire.side_effect = acquire
            return SchemaService(
                session=session,
                metadata_repository=metadata,
                change_log_repository=change_log,
                lock_coordinator=coordinator,
                ddl_executor=ddl,
                scope_to_tenant=TENANT_ID,
            )

        forward = build_service("forward").create_relation(
            CreateRelationRequest(
                logical_name="line_order",
                source_table_id=lines.table_id,
                source_column_id=lines.find_column("order_id").column_id,
                target_table_id=orders.table_id,
                target_column_id=orders.primary_key.column_id,
            )
        )
        backward = build_service("backward").create_relation(
            CreateRelationRequest(
                logical_name="order_line",
                source_table_id=orders.table_id,
                source_column_id=orders.find_column("line_id").column_id,
                target_table_id=lines.table_id,
                target_column_id=lines.primary_key.column_id,
            )
        )

        results = await asyncio.gather(forward, backward, return_exceptions=True)

        assert [type(r).__name__ for r in results] == [
            "RelationDescriptor",
            "RelationDescriptor",
        ]
        assert held == {}

    @pytest.mark.asyncio
    async def test_delete_relation_of_other_tenant(self, service, metadata):
        metadata.get_relation_by_id.return_value = RelationDescriptor(
            relation_id=new_id(),
            tenant_id=OTHER_TENANT_ID,
            logical_name="r",
            source_table_id=new_id(),
            source_column_id=new_id(),
            target_table_id=new_id(),
            target_column_id=new_id(),
            relation_type=RelationType.ONE_TO_ONE,
        )

        with pytest.raises(RelationNotFoundError):
            await service.delete_relation(new_id())


class TestHistory:
    @pytest.mark.asyncio
    async def test_uses_default_limit(self, service, metadata, change_log, table):
        metadata.get_table_by_id.return_value = table
        change_log.get_history.return_value = []

        await service.get_history(table.table_id)

        change_log.get_history.assert_awaited_once_with(table.table_id, limit=25)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_limit(self, service):
        with pytest.raises(ValidationError):
            await service.get_history(new_id(), limit=0)

    @pytest.mark.asyncio
    async def test_requires_tenant_table(self, service, metadata):
        metadata.get_table_by_id.return_value = None

        with pytest.raises(TableNotFoundError):
            await service.get_history(new_id())


class TestListeners:
    @pytest.mark.asyncio
    async def test_failing_listener_does_not_fail_the_change(
        self, service, metadata, listener, probe, table
    ):
        """The change has committed, so listener errors are only reported."""
        metadata.get_table_by_id.return_value = replace(table)
        metadata.current_version.return_value = 3
        listener.on_schema_changed.side_effect = RuntimeError("cache down")

        await service.update_table(UpdateTableRequest(table_id=table.table_id, expected_version=3))

        probe.schema_listener_failed.assert_called_once_with(
            operation="update_table", table_id=str(table.table_id), error="cache down"
        )
