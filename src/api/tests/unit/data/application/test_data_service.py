"""Unit tests for DataService."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import create_autospec
from uuid import uuid4

import pytest

from data.application.observability import DataServiceProbe
from data.application.services import DataService
from data.domain.value_objects import BatchOperation, BatchOperationType
from data.infrastructure import QueryTranslator
from data.ports.repositories import IRowRepository, ITableCatalog
from shared_kernel.exceptions import (
    ColumnNotFoundError,
    DataValidationError,
    FieldError,
    RecordNotFoundError,
    TableNotFoundError,
    TenantIsolationError,
    ValidationError,
)
from tests.unit.conftest import OTHER_TENANT_ID, TENANT_ID


@pytest.fixture
def catalog(orders_table):
    catalog = create_autospec(ITableCatalog, instance=True)

    async def get_table(tenant_id, logical_name):
        return orders_table if logical_name == "orders" else None

    catalog.get_table.side_effect = get_table
    return catalog


@pytest.fixture
def rows():
    return create_autospec(IRowRepository, instance=True)


@pytest.fixture
def probe():
    return create_autospec(DataServiceProbe, instance=True)


@pytest.fixture
def service(mock_session, catalog, rows, probe):
    return DataService(
        session=mock_session,
        catalog=catalog,
        rows=rows,
        translator=QueryTranslator(),
        probe=probe,
    )


def physical(table, name):
    return table.find_column(name).physical_name


def stored_row(table, **values):
    """A physical result row as the database would return it."""
    row = {physical(table, "id"): uuid4(), physical(table, "tenant_id"): TENANT_ID}
    for name, value in values.items():
        row[physical(table, name)] = value
    return row


class TestInsert:
    @pytest.mark.asyncio
    async def test_returns_logical_row(self, service, rows, probe, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="open", total=Decimal("9.5"))

        result = await service.insert(TENANT_ID, "orders", {"status": "open", "total": "9.5"})

        assert result["status"] == "open"
        assert result["total"] == Decimal("9.5")
        assert result["tenant_id"] == TENANT_ID
        probe.record_inserted.assert_called_once()

    @pytest.mark.asyncio
    async def test_binds_coerced_values_and_tenant(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="open")

        await service.insert(TENANT_ID, "orders", {"status": "open", "quantity": "3"})

        sql, params = rows.fetch_one.call_args.args
        assert sql.startswith(f'INSERT INTO "{orders_table.physical_name}"')
        assert sql.endswith("RETURNING *")
        assert 3 in params.values()
        assert TENANT_ID in params.values()

    @pytest.mark.asyncio
    async def test_reports_every_bad_field(self, service, rows, probe):
        """Missing, unknown and invalid fields are all reported together."""
        with pytest.raises(DataValidationError) as exc:
            await service.insert(TENANT_ID, "orders", {"quantity": "many", "colour": "red"})

        fields = {(e.field, e.code) for e in exc.value.errors}
        assert ("quantity", "invalid_value") in fields
        assert ("colour", "unknown_field") in fields
        assert ("status", "required") in fields
        rows.fetch_one.assert_not_called()
        probe.data_operation_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_rejects_other_tenant(self, service, rows):
        with pytest.raises(TenantIsolationError):
            await service.insert(
                TENANT_ID, "orders", {"status": "open", "tenant_id": str(OTHER_TENANT_ID)}
            )
        rows.fetch_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_accepts_own_tenant(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="open")

        await service.insert(TENANT_ID, "orders", {"status": "open", "tenant_id": str(TENANT_ID)})

        rows.fetch_one.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_table(self, service):
        with pytest.raises(TableNotFoundError):
            await service.insert(TENANT_ID, "invoices", {"status": "open"})

    @pytest.mark.asyncio
    async def test_constraint_errors_use_logical_names(self, service, rows, orders_table):
        email = physical(orders_table, "email")
        rows.fetch_one.side_effect = DataValidationError(
            [FieldError(f"uq_{email}", "value must be unique", "unique_violation")]
        )

        with pytest.raises(DataValidationError) as exc:
            await service.insert(TENANT_ID, "orders", {"status": "open", "email": "a@b.c"})

        assert exc.value.errors[0].field == "email"
        assert email not in str(exc.value.errors)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_scopes_by_id_and_tenant(self, service, rows, orders_table):
        record_id = uuid4()
        rows.fetch_one.return_value = stored_row(orders_table, status="paid")

        result = await service.update(TENANT_ID, "orders", str(record_id), {"status": "paid"})

        sql, params = rows.fetch_one.call_args.args
        assert sql.startswith(f'UPDATE "{orders_table.physical_name}" SET')
        assert f'"{physical(orders_table, "tenant_id")}" = :tenant' in sql
        assert params["id"] == record_id
        assert params["tenant"] == TENANT_ID
        assert result["status"] == "paid"

    @pytest.mark.asyncio
    async def test_sets_updated_at(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="paid")

        await service.update(TENANT_ID, "orders", uuid4(), {"status": "paid"})

        sql, params = rows.fetch_one.call_args.args
        assert f'"{physical(orders_table, "updated_at")}"' in sql
        assert any(isinstance(v, datetime) for v in params.values())

    @pytest.mark.asyncio
    async def test_ignores_primary_key(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="paid")

        await service.update(TENANT_ID, "orders", uuid4(), {"id": str(uuid4()), "status": "paid"})

        sql, _ = rows.fetch_one.call_args.args
        set_clause = sql.split(" WHERE ")[0]
        assert physical(orders_table, "id") not in set_clause

    @pytest.mark.asyncio
    async def test_missing_record(self, service, rows, probe):
        rows.fetch_one.return_value = None

        with pytest.raises(RecordNotFoundError):
            await service.update(TENANT_ID, "orders", uuid4(), {"status": "paid"})

        probe.record_updated.assert_not_called()

    @pytest.mark.asyncio
    async def test_null_for_required_field(self, service, rows):
        with pytest.raises(DataValidationError):
            await service.update(TENANT_ID, "orders", uuid4(), {"status": None})

    @pytest.mark.asyncio
    async def test_malformed_record_id(self, service, rows):
        with pytest.raises(ValidationError):
            await service.update(TENANT_ID, "orders", "not-a-uuid", {"status": "paid"})


class TestDeleteAndGet:
    @pytest.mark.asyncio
    async def test_delete_reports_whether_a_row_was_removed(self, service, rows, probe):
        rows.execute.return_value = 1
        assert await service.delete(TENANT_ID, "orders", uuid4()) is True
        probe.record_deleted.assert_called_once()

        rows.execute.return_value = 0
        assert await service.delete(TENANT_ID, "orders", uuid4()) is False

    @pytest.mark.asyncio
    async def test_delete_is_tenant_scoped(self, service, rows, orders_table):
        rows.execute.return_value = 0

        await service.delete(TENANT_ID, "orders", uuid4())

        sql, params = rows.execute.call_args.args
        assert sql.startswith(f'DELETE FROM "{orders_table.physical_name}" WHERE')
        assert params["tenant"] == TENANT_ID

    @pytest.mark.asyncio
    async def test_get_by_id(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="open")

        result = await service.get_by_id(TENANT_ID, "orders", uuid4())

        assert result["status"] == "open"
        sql, _ = rows.fetch_one.call_args.args
        assert sql.endswith(":tenant")

    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, service, rows):
        rows.fetch_one.return_value = None
        assert await service.get_by_id(TENANT_ID, "orders", uuid4()) is None


class TestInsertBatch:
    @pytest.mark.asyncio
    async def test_empty_batch(self, service, rows, mock_session):
        assert await service.insert_batch(TENANT_ID, "orders", []) == []
        mock_session.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_uniform_rows_use_one_statement(self, service, rows, orders_table, probe):
        rows.fetch_all.return_value = [
            stored_row(orders_table, status="a"),
            stored_row(orders_table, status="b"),
        ]

        result = await service.insert_batch(
            TENANT_ID, "orders", [{"status": "a"}, {"status": "b"}]
        )

        assert [r["status"] for r in result] == ["a", "b"]
        sql, params = rows.fetch_all.call_args.args
        assert "UNNEST(" in sql
        assert "AS text[])" in sql
        assert ["a", "b"] in params.values()
        rows.fetch_one.assert_not_called()
        probe.batch_inserted.assert_called_once()

    @pytest.mark.asyncio
    async def test_mixed_columns_insert_row_by_row(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="a")

        await service.insert_batch(
            TENANT_ID, "orders", [{"status": "a"}, {"status": "b", "quantity": 2}]
        )

        assert rows.fetch_one.await_count == 2
        rows.fetch_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_errors_are_indexed_by_row(self, service, rows):
        """One bad row rejects the whole batch before anything is written."""
        with pytest.raises(DataValidationError) as exc:
            await service.insert_batch(
                TENANT_ID, "orders", [{"status": "ok"}, {"quantity": 1}, {"status": "x", "paid": "y"}]
            )

        fields = {e.field for e in exc.value.errors}
        assert fields == {"rows[1].status", "rows[2].paid"}
        rows.fetch_all.assert_not_called()
        rows.fetch_one.assert_not_called()


class TestFilteredBatches:
    @pytest.mark.asyncio
    async def test_update_batch(self, service, rows, orders_table, probe):
        rows.execute.return_value = 4
        where = service.query(TENANT_ID, "orders").where("status", "eq", "open")

        affected = await service.update_batch(TENANT_ID, "orders", {"paid": True}, where)

        assert affected == 4
        sql, params = rows.execute.call_args.args
        assert sql.startswith(f'UPDATE "{orders_table.physical_name}" SET')
        assert "RETURNING" not in sql
        assert params["tenant"] == TENANT_ID
        assert params["p0"] == "open"
        assert True in params.values()
        probe.batch_updated.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_batch(self, service, rows, orders_table):
        rows.execute.return_value = 2
        where = service.query(TENANT_ID, "orders").where("total", "lt", 10)

        assert await service.delete_batch(TENANT_ID, "orders", where) == 2
        sql, _ = rows.execute.call_args.args
        assert sql.startswith(f'DELETE FROM "{orders_table.physical_name}" WHERE')

    @pytest.mark.asyncio
    async def test_filter_for_another_table(self, service, rows):
        where = service.query(TENANT_ID, "customers")

        with pytest.raises(ValidationError):
            await service.delete_batch(TENANT_ID, "orders", where)
        rows.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_filter_for_another_tenant(self, service, rows):
        where = service.query(OTHER_TENANT_ID, "orders")

        with pytest.raises(TenantIsolationError):
            await service.update_batch(TENANT_ID, "orders", {"paid": True}, where)
        rows.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_filter_with_join(self, service, rows):
        where = service.query(TENANT_ID, "orders").join("customers", "customer_id", "id")

        with pytest.raises(ValidationError):
            await service.delete_batch(TENANT_ID, "orders", where)


class TestUpsert:
    @pytest.mark.asyncio
    async def test_conflict_update_is_tenant_guarded(self, service, rows, orders_table, probe):
        rows.fetch_one.return_value = stored_row(orders_table, status="open", email="a@b.c")

        result = await service.upsert(
            TENANT_ID, "orders", {"status": "open", "email": "a@b.c"}, ["email"]
        )

        sql, _ = rows.fetch_one.call_args.args
        email = physical(orders_table, "email")
        tenant = physical(orders_table, "tenant_id")
        assert f'ON CONFLICT ("{email}") DO UPDATE SET' in sql
        assert "= EXCLUDED." in sql
        assert f'WHERE "{orders_table.physical_name}"."{tenant}" = EXCLUDED."{tenant}"' in sql
        assert sql.endswith("RETURNING *")
        assert result["email"] == "a@b.c"
        probe.record_upserted.assert_called_once()

    @pytest.mark.asyncio
    async def test_other_tenants_row_is_not_overwritten(self, service, rows):
        rows.fetch_one.return_value = None

        with pytest.raises(TenantIsolationError):
            await service.upsert(TENANT_ID, "orders", {"status": "x", "email": "a@b.c"}, ["email"])

    @pytest.mark.asyncio
    async def test_requires_key_columns(self, service, mock_session):
        with pytest.raises(ValidationError):
            await service.upsert(TENANT_ID, "orders", {"status": "x"}, [])
        mock_session.begin.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_key_column(self, service):
        with pytest.raises(ColumnNotFoundError):
            await service.upsert(TENANT_ID, "orders", {"status": "x"}, ["sku"])

    @pytest.mark.asyncio
    async def test_key_value_required(self, service, rows):
        with pytest.raises(DataValidationError) as exc:
            await service.upsert(TENANT_ID, "orders", {"status": "x"}, ["email"])

        assert exc.value.errors[0].field == "email"
        rows.fetch_one.assert_not_called()


class TestExecuteBatch:
    @pytest.mark.asyncio
    async def test_partial_success(self, service, rows, orders_table, mock_session):
        """Earlier operations stay applied when a later one fails."""
        rows.fetch_one.return_value = stored_row(orders_table, status="open")
        rows.execute.return_value = 0

        results = await service.execute_batch(
            TENANT_ID,
            [
                BatchOperation(BatchOperationType.INSERT, "orders", data={"status": "open"}),
                BatchOperation(BatchOperationType.DELETE, "orders", record_id=uuid4()),
                BatchOperation(BatchOperationType.INSERT, "invoices", data={}),
            ],
        )

        assert [r.success for r in results] == [True, False, False]
        assert [r.index for r in results] == [0, 1, 2]
        assert results[0].data["status"] == "open"
        assert results[1].error_code == "NOT_FOUND"
        assert results[2].error_code == "TABLE_NOT_FOUND"
        assert mock_session.begin.call_count == 3

    @pytest.mark.asyncio
    async def test_update_needs_record_id(self, service, rows):
        results = await service.execute_batch(
            TENANT_ID,
            [BatchOperation(BatchOperationType.UPDATE, "orders", data={"status": "x"})],
        )

        assert not results[0].success
        assert results[0].error_code == "VALIDATION_ERROR"
        rows.fetch_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_operation(self, service, rows, orders_table):
        rows.fetch_one.return_value = stored_row(orders_table, status="x", email="a@b.c")

        results = await service.execute_batch(
            TENANT_ID,
            [
                BatchOperation(
                    BatchOperationType.UPSERT,
                    "orders",
                    data={"status": "x", "email": "a@b.c"},
                    key_columns=("email",),
                )
            ],
        )

        assert results[0].success
        assert results[0].affected_rows == 1
