"""Physical name generation for dynamic schema objects.

Physical names are deterministic, collision-resistant PostgreSQL identifiers
derived from SHA256 hashes. The schema and data contexts both depend on this
implementation, so the hashing format must not change without a migration
of existing objects.
"""

from __future__ import annotations

import hashlib
from enum import StrEnum
from uuid import UUID

MAX_IDENTIFIER_LENGTH = 63
HASH_LENGTH = 12


class PhysicalKind(StrEnum):
    """Kinds of physical objects, with their hash input tag."""

    TABLE = "table"
    COLUMN = "column"
    INDEX = "index"
    FOREIGN_KEY = "fk"
    CHECK = "chk"

    @property
    def prefix(self) -> str:
        """Tag prepended to generated names."""
        return _PREFIXES[self]


_PREFIXES = {
    PhysicalKind.TABLE: "tbl",
    PhysicalKind.COLUMN: "col",
    PhysicalKind.INDEX: "idx",
    PhysicalKind.FOREIGN_KEY: "fk",
    PhysicalKind.CHECK: "chk",
}


class PhysicalNameGenerator:
    """Generates deterministic physical identifiers.

    The name format is ``{prefix}_{hash}`` where hash is the first 12 hex
    characters of SHA256("{scope_id}:{kind}:{logical_name}"). The same
    triple always yields the same name; a different scope always yields a
    different one, which isolates tenants and tables from each other.

    Object factories scope each name by the object's own generated id, so a
    recreated object never reuses the physical name of a deleted one.

    Example:
        >>> name = PhysicalNameGenerator.generate(PhysicalKind.TABLE, "t1", "customers")
        >>> assert name.startswith("tbl_") and len(name) == 16
    """

    @staticmethod
    def generate(kind: PhysicalKind, scope_id: str, logical_name: str) -> str:
        """Generate a physical name for a logical name within a scope.

        Args:
            kind: The kind of physical object
            scope_id: Identifier of the enclosing scope (tenant, table, ...)
            logical_name: The user-facing name being mapped

        Returns:
            Physical identifier, e.g. "col_0a1b2c3d4e5f"

        Raises:
            ValueError: If scope_id or logical_name is empty
        """
        if not scope_id:
            raise ValueError("scope_id must not be empty")
        if not logical_name:
            raise ValueError("logical_name must not be empty")

        combined = f"{scope_id}:{kind.value}:{logical_name}"
        hash_value = hashlib.sha256(combined.encode("utf-8")).hexdigest()[:HASH_LENGTH]
        return f"{kind.prefix}_{hash_value}"

    @classmethod
    def table_name(cls, tenant_id: UUID, table_id: UUID, logical_name: str) -> str:
        """Physical name for a table owned by a tenant."""
        return cls.generate(PhysicalKind.TABLE, f"{tenant_id}/{table_id}", logical_name)

    @classmethod
    def column_name(cls, table_id: UUID, column_id: UUID, logical_name: str) -> str:
        """Physical name for a column of a table."""
        return cls.generate(PhysicalKind.COLUMN, f"{table_id}/{column_id}", logical_name)

    @classmethod
    def index_name(cls, table_id: UUID, index_id: UUID, logical_name: str) -> str:
        """Physical name for an index on a table."""
        return cls.generate(PhysicalKind.INDEX, f"{table_id}/{index_id}", logical_name)

    @classmethod
    def constraint_name(
        cls,
        kind: PhysicalKind,
        table_id: UUID,
        constraint_id: UUID,
        logical_name: str,
    ) -> str:
        """Physical name for a foreign-key or check constraint.

        Raises:
            ValueError: If kind is not a constraint kind
        """
        if kind not in (PhysicalKind.FOREIGN_KEY, PhysicalKind.CHECK):
            raise ValueError(f"{kind.value} is not a constraint kind")
        return cls.generate(kind, f"{table_id}/{constraint_id}", logical_name)

    @staticmethod
    def is_valid_physical_name(name: str) -> bool:
        """Check a name against PostgreSQL's identifier limit (63 bytes)."""
        if not name:
            return False
        return len(name.encode("utf-8")) <= MAX_IDENTIFIER_LENGTH
