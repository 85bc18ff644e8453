"""SQLAlchemy ORM models for schema metadata.

Descriptors are never hard-deleted. Logical-name uniqueness therefore only
holds among active rows and is enforced by partial unique indexes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import METADATA_SCHEMA, Base, TimestampMixin

_TABLES_FK = f"{METADATA_SCHEMA}.morph_tables.id"
_COLUMNS_FK = f"{METADATA_SCHEMA}.morph_columns.id"


class MorphTableModel(Base, TimestampMixin):
    """ORM model for table descriptors."""

    __tablename__ = "morph_tables"
    __table_args__ = (
        Index(
            "uq_morph_tables_tenant_logical_name",
            "tenant_id",
            "logical_name",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    tenant_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), nullable=False, index=True
    )
    logical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    physical_name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    descriptor: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<MorphTableModel(id={self.id}, tenant_id={self.tenant_id}, "
            f"logical_name={self.logical_name}, version={self.schema_version})>"
        )


class MorphColumnModel(Base, TimestampMixin):
    """ORM model for column descriptors."""

    __tablename__ = "morph_columns"
    __table_args__ = (
        Index(
            "uq_morph_columns_table_physical_name",
            "table_id",
            "physical_name",
            unique=True,
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    table_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(_TABLES_FK, ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    logical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    physical_name: Mapped[str] = mapped_column(String(63), nullable=False)
    data_type: Mapped[str] = mapped_column(String(32), nullable=False)
    native_type: Mapped[str] = mapped_column(String(32), nullable=False)
    ordinal_position: Mapped[int] = mapped_column(Integer, nullable=False)
    is_nullable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_unique: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_primary_key: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_indexed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_encrypted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_expression: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return (
            f"<MorphColumnModel(id={self.id}, table_id={self.table_id}, "
            f"logical_name={self.logical_name})>"
        )


# Column names compare case-insensitively among active columns of a table
Index(
    "uq_morph_columns_table_logical_name",
    MorphColumnModel.table_id,
    func.lower(MorphColumnModel.logical_name),
    unique=True,
    postgresql_where=MorphColumnModel.is_active,
)


class MorphIndexModel(Base, TimestampMixin):
    """ORM model for index descriptors.

    ``columns`` holds ``[{column_id, physical_name, direction, nulls_position}]``.
    """

    __tablename__ = "morph_indexes"
    __table_args__ = (
        Index(
            "uq_morph_indexes_table_logical_name",
            "table_id",
            "logical_name",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    table_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(_TABLES_FK, ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    logical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    physical_name: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)
    columns: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False)
    index_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_unique: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    where_clause: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class MorphRelationModel(Base, TimestampMixin):
    """ORM model for relation descriptors."""

    __tablename__ = "morph_relations"
    __table_args__ = (
        Index(
            "uq_morph_relations_tenant_logical_name",
            "tenant_id",
            "logical_name",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    tenant_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), nullable=False, index=True
    )
    logical_name: Mapped[str] = mapped_column(String(255), nullable=False)
    source_table_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey(_TABLES_FK, ondelete="RESTRICT"), nullable=False
    )
    source_column_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey(_COLUMNS_FK, ondelete="RESTRICT"), nullable=False
    )
    target_table_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey(_TABLES_FK, ondelete="RESTRICT"), nullable=False
    )
    target_column_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey(_COLUMNS_FK, ondelete="RESTRICT"), nullable=False
    )
    relation_type: Mapped[str] = mapped_column(String(16), nullable=False)
    on_delete: Mapped[str] = mapped_column(String(16), nullable=False)
    on_update: Mapped[str] = mapped_column(String(16), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class MorphChangeLogModel(Base):
    """ORM model for the append-only schema change log."""

    __tablename__ = "morph_changelog"
    __table_args__ = (
        Index("ix_morph_changelog_table_performed_at", "table_id", "performed_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    table_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey(_TABLES_FK, ondelete="RESTRICT"), nullable=False
    )
    operation: Mapped[str] = mapped_column(String(32), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    performed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
