"""Unit tests for the engine error taxonomy."""

import pytest

from shared_kernel.exceptions import (
    ColumnNotFoundError,
    ConcurrencyConflictError,
    DataValidationError,
    DuplicateNameError,
    FieldError,
    LockAcquisitionTimeoutError,
    MorphError,
    NotFoundError,
    RecordNotFoundError,
    StatementExecutionError,
    TableNotFoundError,
    TenantIsolationError,
    ValidationError,
)


class TestErrorCodes:
    @pytest.mark.parametrize(
        "error,code",
        [
            (ValidationError("bad"), "VALIDATION_ERROR"),
            (DataValidationError([]), "VALIDATION_FAILED"),
            (DuplicateNameError("Table", "orders"), "DUPLICATE_NAME"),
            (TableNotFoundError("orders"), "TABLE_NOT_FOUND"),
            (ColumnNotFoundError("orders", "status"), "COLUMN_NOT_FOUND"),
            (RecordNotFoundError("orders", "1"), "NOT_FOUND"),
            (ConcurrencyConflictError(1, 2), "SCHEMA_VERSION_CONFLICT"),
            (LockAcquisitionTimeoutError("table:x", 30), "LOCK_ACQUISITION_FAILED"),
            (TenantIsolationError(), "TENANT_ISOLATION_VIOLATION"),
            (StatementExecutionError("boom"), "EXECUTION_ERROR"),
        ],
    )
    def test_stable_codes(self, error, code):
        """Every error carries a stable machine-readable code."""
        assert error.code == code
        assert isinstance(error, MorphError)

    def test_code_can_be_overridden_per_instance(self):
        error = MorphError("x", code="CUSTOM")
        assert error.code == "CUSTOM"
        assert MorphError.code == "MORPH_ERROR"


class TestMessages:
    def test_validation_error_names_field(self):
        error = ValidationError("must not be empty", field="logical_name")

        assert error.field == "logical_name"
        assert str(error) == "Validation error for 'logical_name': must not be empty"

    def test_concurrency_conflict_reports_both_versions(self):
        error = ConcurrencyConflictError(expected_version=3, actual_version=5)

        assert error.expected_version == 3
        assert error.actual_version == 5
        assert "Expected 3" in error.message
        assert "current version is 5" in error.message

    def test_lock_timeout_formats_seconds(self):
        error = LockAcquisitionTimeoutError("table:abc", 2.5)
        assert error.message == "Failed to acquire lock for 'table:abc' within 2.5 seconds."

    def test_not_found_family(self):
        """Specific not-found errors share the NotFoundError base."""
        for error in (
            TableNotFoundError("orders"),
            ColumnNotFoundError("orders", "x"),
            RecordNotFoundError("orders", "1"),
        ):
            assert isinstance(error, NotFoundError)

    def test_for_resource(self):
        error = NotFoundError.for_resource("Index", "idx_1")
        assert error.message == "Index 'idx_1' not found."

    def test_statement_is_kept_off_the_message(self):
        error = StatementExecutionError("DDL execution failed", statement="DROP TABLE x")

        assert error.statement == "DROP TABLE x"
        assert "DROP TABLE" not in error.message


class TestDataValidationError:
    def test_collects_field_errors(self):
        errors = [
            FieldError("email", "value is required", "required"),
            FieldError("total", "invalid decimal", "invalid_value"),
        ]

        error = DataValidationError(errors)

        assert error.errors == errors
        assert error.message == "Data validation failed."
