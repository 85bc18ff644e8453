"""Value objects for the schema domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID


class SchemaOperation(StrEnum):
    """Kinds of schema mutation recorded in the change log."""

    CREATE_TABLE = "create_table"
    UPDATE_TABLE = "update_table"
    DELETE_TABLE = "delete_table"
    ADD_COLUMN = "add_column"
    UPDATE_COLUMN = "update_column"
    DELETE_COLUMN = "delete_column"
    CREATE_INDEX = "create_index"
    DELETE_INDEX = "delete_index"
    CREATE_RELATION = "create_relation"
    DELETE_RELATION = "delete_relation"


@dataclass(frozen=True)
class ChangeLogEntry:
    """Immutable audit record of one schema mutation.

    Attributes:
        change_id: Unique id of the entry
        table_id: The table the change applied to
        operation: What kind of mutation happened
        schema_version: Table version after the change
        changes: Structured payload describing the change
        performed_by: Actor identity, when known
        performed_at: When the change was recorded (set by the store)
    """

    change_id: UUID
    table_id: UUID
    operation: SchemaOperation
    schema_version: int
    changes: dict[str, Any] = field(default_factory=dict)
    performed_by: str | None = None
    performed_at: datetime | None = None
