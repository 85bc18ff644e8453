"""Error taxonomy shared by the schema and data bounded contexts.

Every error carries a stable machine-readable ``code`` plus a human-readable
message. The presentation layer maps these to HTTP responses; no storage
details or statements cross that boundary.
"""

from __future__ import annotations

from dataclasses import dataclass


class MorphError(Exception):
    """Base exception for all engine errors."""

    code: str = "MORPH_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(MorphError):
    """Raised when a request has a bad shape or an invalid name."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        if field is not None:
            message = f"Validation error for '{field}': {message}"
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class FieldError:
    """A single row-level validation failure."""

    field: str
    message: str
    code: str


class DataValidationError(MorphError):
    """Raised when row data fails validation.

    Carries one FieldError per offending field so callers can report
    every problem at once.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, errors: list[FieldError], message: str | None = None):
        super().__init__(message or "Data validation failed.")
        self.errors = errors


class DuplicateNameError(MorphError):
    """Raised when a logical name already exists among active siblings."""

    code = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str):
        super().__init__(f"{entity_type} with name '{name}' already exists.")
        self.entity_type = entity_type
        self.name = name


class NotFoundError(MorphError):
    """Raised when a reference does not resolve to an active object."""

    code = "NOT_FOUND"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message, code)

    @classmethod
    def for_resource(cls, resource_type: str, identifier: str) -> NotFoundError:
        """Build a not-found error for a resource type and identifier."""
        return cls(f"{resource_type} '{identifier}' not found.")


class TableNotFoundError(NotFoundError):
    """Raised when a table does not exist or is inactive."""

    code = "TABLE_NOT_FOUND"

    def __init__(self, table: str):
        super().__init__(f"Table '{table}' not found.")
        self.table = table


class ColumnNotFoundError(NotFoundError):
    """Raised when a column does not exist or is inactive."""

    code = "COLUMN_NOT_FOUND"

    def __init__(self, table: str, column: str):
        super().__init__(f"Column '{column}' not found in table '{table}'.")
        self.table = table
        self.column = column


class IndexNotFoundError(NotFoundError):
    """Raised when an index does not exist or is inactive."""

    code = "INDEX_NOT_FOUND"

    def __init__(self, index_id: str):
        super().__init__(f"Index with ID '{index_id}' not found.")


class RelationNotFoundError(NotFoundError):
    """Raised when a relation does not exist or is inactive."""

    code = "RELATION_NOT_FOUND"

    def __init__(self, relation_id: str):
        super().__init__(f"Relation with ID '{relation_id}' not found.")


class RecordNotFoundError(NotFoundError):
    """Raised when a row does not exist in a dynamic table."""

    def __init__(self, table: str, record_id: str):
        super().__init__(f"Record with id '{record_id}' not found in table '{table}'.")


class ConcurrencyConflictError(MorphError):
    """Raised when the caller's expected schema version is stale."""

    code = "SCHEMA_VERSION_CONFLICT"

    def __init__(self, expected_version: int, actual_version: int):
        super().__init__(
            f"Schema version conflict. Expected {expected_version}, "
            f"but current version is {actual_version}."
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class LockAcquisitionTimeoutError(MorphError):
    """Raised when a schema lock could not be acquired in time."""

    code = "LOCK_ACQUISITION_FAILED"

    def __init__(self, resource_key: str, timeout_seconds: float):
        super().__init__(
            f"Failed to acquire lock for '{resource_key}' "
            f"within {timeout_seconds:g} seconds."
        )
        self.resource_key = resource_key
        self.timeout_seconds = timeout_seconds


class TenantIsolationError(MorphError):
    """Raised when a request touches data owned by another tenant."""

    code = "TENANT_ISOLATION_VIOLATION"

    def __init__(self, message: str = "Access denied: tenant isolation violation."):
        super().__init__(message)


class StatementExecutionError(MorphError):
    """Raised when the database rejects a DDL or DML statement.

    The failing statement is kept for logging only and must never be
    returned to API callers.
    """

    code = "EXECUTION_ERROR"

    def __init__(self, message: str, statement: str | None = None):
        super().__init__(message)
        self.statement = statement
