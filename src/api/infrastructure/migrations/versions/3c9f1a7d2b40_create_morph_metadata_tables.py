"""create morph metadata tables

Creates the ``morph`` schema holding table, column, index and relation
descriptors plus the schema change log. Tenant tables themselves are
created at runtime in ``public`` and are not managed by migrations.

Revision ID: 3c9f1a7d2b40
Revises:
Create Date: 2026-10-18 09:12:44.518203

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3c9f1a7d2b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "morph"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.execute(f"CREATE SCHEMA IF NOT EXISTS {SCHEMA}")

    op.create_table(
        "morph_tables",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("logical_name", sa.String(length=255), nullable=False),
        sa.Column("physical_name", sa.String(length=63), nullable=False),
        sa.Column("schema_version", sa.Integer(), nullable=False),
        sa.Column("descriptor", postgresql.JSONB(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_morph_tables"),
        sa.UniqueConstraint("physical_name", name="uq_morph_tables_physical_name"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_morph_tables_tenant_id", "morph_tables", ["tenant_id"], schema=SCHEMA
    )
    # Logical names are unique among active tables of a tenant only
    op.create_index(
        "uq_morph_tables_tenant_logical_name",
        "morph_tables",
        ["tenant_id", "logical_name"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "morph_columns",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("table_id", sa.UUID(), nullable=False),
        sa.Column("logical_name", sa.String(length=255), nullable=False),
        sa.Column("physical_name", sa.String(length=63), nullable=False),
        sa.Column("data_type", sa.String(length=32), nullable=False),
        sa.Column("native_type", sa.String(length=32), nullable=False),
        sa.Column("ordinal_position", sa.Integer(), nullable=False),
        sa.Column("is_nullable", sa.Boolean(), nullable=False),
        sa.Column("is_unique", sa.Boolean(), nullable=False),
        sa.Column("is_primary_key", sa.Boolean(), nullable=False),
        sa.Column("is_indexed", sa.Boolean(), nullable=False),
        sa.Column("is_encrypted", sa.Boolean(), nullable=False),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("check_expression", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_morph_columns"),
        sa.ForeignKeyConstraint(
            ["table_id"],
            [f"{SCHEMA}.morph_tables.id"],
            name="fk_morph_columns_table_id_morph_tables",
            ondelete="RESTRICT",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_morph_columns_table_id", "morph_columns", ["table_id"], schema=SCHEMA
    )
    op.create_index(
        "uq_morph_columns_table_physical_name",
        "morph_columns",
        ["table_id", "physical_name"],
        unique=True,
        schema=SCHEMA,
    )
    op.create_index(
        "uq_morph_columns_table_logical_name",
        "morph_columns",
        ["table_id", sa.text("lower(logical_name)")],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "morph_indexes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("table_id", sa.UUID(), nullable=False),
        sa.Column("logical_name", sa.String(length=255), nullable=False),
        sa.Column("physical_name", sa.String(length=63), nullable=False),
        sa.Column("columns", postgresql.JSONB(), nullable=False),
        sa.Column("index_type", sa.String(length=16), nullable=False),
        sa.Column("is_unique", sa.Boolean(), nullable=False),
        sa.Column("where_clause", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_morph_indexes"),
        sa.UniqueConstraint("physical_name", name="uq_morph_indexes_physical_name"),
        sa.ForeignKeyConstraint(
            ["table_id"],
            [f"{SCHEMA}.morph_tables.id"],
            name="fk_morph_indexes_table_id_morph_tables",
            ondelete="RESTRICT",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_morph_indexes_table_id", "morph_indexes", ["table_id"], schema=SCHEMA
    )
    op.create_index(
        "uq_morph_indexes_table_logical_name",
        "morph_indexes",
        ["table_id", "logical_name"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "morph_relations",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("tenant_id", sa.UUID(), nullable=False),
        sa.Column("logical_name", sa.String(length=255), nullable=False),
        sa.Column("source_table_id", sa.UUID(), nullable=False),
        sa.Column("source_column_id", sa.UUID(), nullable=False),
        sa.Column("target_table_id", sa.UUID(), nullable=False),
        sa.Column("target_column_id", sa.UUID(), nullable=False),
        sa.Column("relation_type", sa.String(length=16), nullable=False),
        sa.Column("on_delete", sa.String(length=16), nullable=False),
        sa.Column("on_update", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_morph_relations"),
        sa.ForeignKeyConstraint(
            ["source_table_id"],
            [f"{SCHEMA}.morph_tables.id"],
            name="fk_morph_relations_source_table_id_morph_tables",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["source_column_id"],
            [f"{SCHEMA}.morph_columns.id"],
            name="fk_morph_relations_source_column_id_morph_columns",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["target_table_id"],
            [f"{SCHEMA}.morph_tables.id"],
            name="fk_morph_relations_target_table_id_morph_tables",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["target_column_id"],
            [f"{SCHEMA}.morph_columns.id"],
            name="fk_morph_relations_target_column_id_morph_columns",
            ondelete="RESTRICT",
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_morph_relations_tenant_id", "morph_relations", ["tenant_id"], schema=SCHEMA
    )
    op.create_index(
        "uq_morph_relations_tenant_logical_name",
        "morph_relations",
        ["tenant_id", "logical_name"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "morph_changelog",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("table_id", sa.UUID(), nullable=False),
        sa.Column("operation", sa.String(length=32), nullable=False),
        sa.Column("schema_version", sa.Integer(), nullable=False),
        sa.Column("changes", postgresql.JSONB(), nullable=False),
        sa.Column("performed_by", sa.String(length=255), nullable=True),
        sa.Column(
            "performed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_morph_changelog"),
        sa.ForeignKeyConstraint(
            ["table_id"],
            [f"{SCHEMA}.morph_tables.id"],
            name="fk_morph_changelog_table_id_morph_tables",
            ondelete="RESTRICT",
        ),
        schema=SCHEMA,
    )
    # History reads are newest-first per table
    op.create_index(
        "ix_morph_changelog_table_performed_at",
        "morph_changelog",
        ["table_id", "performed_at"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("morph_changelog", schema=SCHEMA)
    op.drop_table("morph_relations", schema=SCHEMA)
    op.drop_table("morph_indexes", schema=SCHEMA)
    op.drop_table("morph_columns", schema=SCHEMA)
    op.drop_table("morph_tables", schema=SCHEMA)
    op.execute(f"DROP SCHEMA IF EXISTS {SCHEMA}")
