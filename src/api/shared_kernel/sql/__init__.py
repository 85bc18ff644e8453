"""SQL statement builders.

Pure functions producing PostgreSQL DDL and DML text from descriptors.
Nothing in this package touches a database connection.
"""

from shared_kernel.sql.ddl import (
    ColumnDefinition,
    ForeignKeyDefinition,
    IndexDefinition,
)
from shared_kernel.sql.identifiers import quote_identifier, quote_qualified

__all__ = [
    "ColumnDefinition",
    "ForeignKeyDefinition",
    "IndexDefinition",
    "quote_identifier",
    "quote_qualified",
]
