"""Unit tests for table routes."""

from datetime import UTC, datetime

from schema.domain.value_objects import ChangeLogEntry, SchemaOperation
from shared_kernel.exceptions import (
    ConcurrencyConflictError,
    DuplicateNameError,
    LockAcquisitionTimeoutError,
    StatementExecutionError,
    TableNotFoundError,
    ValidationError,
)
from shared_kernel.schema_primitives import DataType, new_id
from tests.unit.conftest import TENANT_ID, build_table


class TestCreateTable:
    def test_returns_201_with_columns(self, client, mock_service):
        """The response includes system and user columns."""
        table = build_table("orders", [("status", DataType.TEXT)])
        mock_service.create_table.return_value = table

        response = client.post(
            "/schema/tables",
            json={
                "logical_name": "orders",
                "columns": [{"logical_name": "status", "data_type": "text"}],
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["id"] == str(table.table_id)
        assert body["tenant_id"] == str(TENANT_ID)
        assert body["schema_version"] == 1
        assert [c["logical_name"] for c in body["columns"]][-1] == "status"
        assert body["columns"][0]["is_system"] is True

        command = mock_service.create_table.call_args.args[0]
        assert command.logical_name == "orders"
        assert command.columns[0].data_type == DataType.TEXT

    def test_unknown_data_type_is_422(self, client):
        response = client.post(
            "/schema/tables",
            json={"logical_name": "t", "columns": [{"logical_name": "c", "data_type": "blob"}]},
        )
        assert response.status_code == 422

    def test_duplicate_is_409(self, client, mock_service):
        mock_service.create_table.side_effect = DuplicateNameError("Table", "orders")

        response = client.post("/schema/tables", json={"logical_name": "orders"})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_NAME"

    def test_validation_error_is_400(self, client, mock_service):
        mock_service.create_table.side_effect = ValidationError("reserved", field="columns")

        response = client.post("/schema/tables", json={"logical_name": "orders"})

        assert response.status_code == 400

    def test_lock_timeout_is_423(self, client, mock_service):
        mock_service.create_table.side_effect = LockAcquisitionTimeoutError("table:x", 30)

        response = client.post("/schema/tables", json={"logical_name": "orders"})

        assert response.status_code == 423
        assert response.json()["detail"]["code"] == "LOCK_ACQUISITION_FAILED"

    def test_database_errors_hide_statement(self, client, mock_service):
        """DDL text never reaches the caller."""
        mock_service.create_table.side_effect = StatementExecutionError(
            "DDL execution failed", statement='CREATE TABLE "tbl_secret"'
        )

        response = client.post("/schema/tables", json={"logical_name": "orders"})

        assert response.status_code == 500
        assert "tbl_secret" not in response.text

    def test_unexpected_error_is_500(self, client, mock_service):
        mock_service.create_table.side_effect = RuntimeError("boom")

        response = client.post("/schema/tables", json={"logical_name": "orders"})

        assert response.status_code == 500
        assert response.json()["detail"]["code"] == "INTERNAL_ERROR"


class TestReadTables:
    def test_get_missing_table_is_404(self, client, mock_service):
        mock_service.get_table_by_id.return_value = None

        response = client.get(f"/schema/tables/{new_id()}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "TABLE_NOT_FOUND"

    def test_get_by_name(self, client, mock_service):
        mock_service.get_table.return_value = build_table("orders", [])

        response = client.get("/schema/tables/by-name/orders")

        assert response.status_code == 200
        mock_service.get_table.assert_awaited_once_with("orders")

    def test_list_tables(self, client, mock_service):
        mock_service.list_tables.return_value = [build_table("a", []), build_table("b", [])]

        response = client.get("/schema/tables?include_columns=true")

        assert [t["logical_name"] for t in response.json()] == ["a", "b"]
        mock_service.list_tables.assert_awaited_once_with(include_columns=True)


class TestUpdateAndDelete:
    def test_rename_requires_expected_version(self, client):
        response = client.patch(f"/schema/tables/{new_id()}", json={"logical_name": "x"})
        assert response.status_code == 422

    def test_stale_version_is_409(self, client, mock_service):
        mock_service.update_table.side_effect = ConcurrencyConflictError(1, 2)

        response = client.patch(
            f"/schema/tables/{new_id()}", json={"expected_version": 1, "logical_name": "x"}
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "SCHEMA_VERSION_CONFLICT"

    def test_delete_returns_204(self, client, mock_service):
        table_id = new_id()

        response = client.delete(f"/schema/tables/{table_id}?expected_version=2")

        assert response.status_code == 204
        mock_service.delete_table.assert_awaited_once_with(table_id, expected_version=2)

    def test_delete_missing_is_404(self, client, mock_service):
        mock_service.delete_table.side_effect = TableNotFoundError("x")

        response = client.delete(f"/schema/tables/{new_id()}")

        assert response.status_code == 404


class TestHistory:
    def test_returns_entries(self, client, mock_service):
        table_id = new_id()
        mock_service.get_history.return_value = [
            ChangeLogEntry(
                change_id=new_id(),
                table_id=table_id,
                operation=SchemaOperation.ADD_COLUMN,
                schema_version=2,
                changes={"logical_name": "status"},
                performed_by="alice",
                performed_at=datetime(2026, 1, 1, tzinfo=UTC),
            )
        ]

        response = client.get(f"/schema/tables/{table_id}/history?limit=5")

        assert response.status_code == 200
        entry = response.json()[0]
        assert entry["operation"] == "add_column"
        assert entry["performed_by"] == "alice"
        mock_service.get_history.assert_awaited_once_with(table_id, limit=5)

    def test_limit_must_be_positive(self, client):
        response = client.get(f"/schema/tables/{new_id()}/history?limit=0")
        assert response.status_code == 422
