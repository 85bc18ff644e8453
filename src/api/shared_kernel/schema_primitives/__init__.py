"""Schema primitives module.

Foundational components for dynamic schemas shared across bounded contexts:
abstract data types, physical name generation and schema descriptors.
"""

from shared_kernel.schema_primitives.data_types import (
    DataType,
    IndexType,
    NullsPosition,
    ReferentialAction,
    RelationType,
    SortDirection,
    TypeMapper,
)
from shared_kernel.schema_primitives.descriptors import (
    CREATED_AT_COLUMN,
    ID_COLUMN,
    SYSTEM_COLUMNS,
    TENANT_COLUMN,
    UPDATED_AT_COLUMN,
    ColumnDescriptor,
    IndexColumn,
    IndexDescriptor,
    RelationDescriptor,
    TableDescriptor,
    new_id,
)
from shared_kernel.schema_primitives.physical_names import (
    PhysicalKind,
    PhysicalNameGenerator,
)

__all__ = [
    "CREATED_AT_COLUMN",
    "ColumnDescriptor",
    "DataType",
    "ID_COLUMN",
    "IndexColumn",
    "IndexDescriptor",
    "IndexType",
    "NullsPosition",
    "PhysicalKind",
    "PhysicalNameGenerator",
    "ReferentialAction",
    "RelationDescriptor",
    "RelationType",
    "SYSTEM_COLUMNS",
    "SortDirection",
    "TENANT_COLUMN",
    "TableDescriptor",
    "TypeMapper",
    "UPDATED_AT_COLUMN",
    "new_id",
]
