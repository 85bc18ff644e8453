"""Schema domain layer: operations, change records and validation rules."""

from schema.domain.lock_keys import resource_key, table_resource_key
from schema.domain.validation import (
    SYSTEM_PREFIX,
    validate_column_name,
    validate_expression,
    validate_logical_name,
)
from schema.domain.value_objects import ChangeLogEntry, SchemaOperation

__all__ = [
    "ChangeLogEntry",
    "SYSTEM_PREFIX",
    "SchemaOperation",
    "resource_key",
    "table_resource_key",
    "validate_column_name",
    "validate_expression",
    "validate_logical_name",
]
