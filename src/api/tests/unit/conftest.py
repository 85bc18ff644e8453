"""Unit test fixtures with mocked dependencies."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from shared_kernel.schema_primitives import (
    ID_COLUMN,
    SYSTEM_COLUMNS,
    TENANT_COLUMN,
    ColumnDescriptor,
    DataType,
    PhysicalNameGenerator,
    TableDescriptor,
    TypeMapper,
    new_id,
)

TENANT_ID = UUID("3f2504e0-4f89-11d3-9a0c-0305e82c3301")
OTHER_TENANT_ID = UUID("9b2d3c1e-0a4f-4f7e-8c61-2f4b5a6d7e80")

_SYSTEM_TYPES = {
    "id": DataType.UUID,
    "tenant_id": DataType.UUID,
    "created_at": DataType.CREATED_TIME,
    "updated_at": DataType.MODIFIED_TIME,
}


def build_table(
    logical_name: str,
    columns: list[tuple[str, DataType] | tuple[str, DataType, dict[str, Any]]],
    tenant_id: UUID = TENANT_ID,
    schema_version: int = 1,
) -> TableDescriptor:
    """Build a table descriptor with the system columns plus ``columns``.

    Each column is ``(name, data_type)`` or ``(name, data_type, overrides)``
    where overrides are ColumnDescriptor keyword arguments.
    """
    table_id = new_id()
    specs: list[tuple[str, DataType, dict[str, Any]]] = [
        (
            name,
            _SYSTEM_TYPES[name],
            {
                "is_nullable": False,
                "is_primary_key": name == ID_COLUMN,
                "default_value": None
                if name == TENANT_COLUMN
                else "gen_random_uuid()"
                if name == ID_COLUMN
                else "now()",
            },
        )
        for name in SYSTEM_COLUMNS
    ]
    for spec in columns:
        name, data_type = spec[0], spec[1]
        overrides = spec[2] if len(spec) > 2 else {}
        specs.append((name, data_type, overrides))

    descriptors = []
    for position, (name, data_type, overrides) in enumerate(specs, start=1):
        column_id = new_id()
        descriptors.append(
            ColumnDescriptor(
                column_id=column_id,
                table_id=table_id,
                logical_name=name,
                physical_name=PhysicalNameGenerator.column_name(table_id, column_id, name),
                data_type=data_type,
                native_type=TypeMapper.to_native_type(data_type),
                ordinal_position=position,
                **overrides,
            )
        )

    return TableDescriptor(
        table_id=table_id,
        tenant_id=tenant_id,
        logical_name=logical_name,
        physical_name=PhysicalNameGenerator.table_name(tenant_id, table_id, logical_name),
        schema_version=schema_version,
        columns=tuple(descriptors),
    )


@pytest.fixture
def tenant_id() -> UUID:
    return TENANT_ID


@pytest.fixture
def mock_session():
    """AsyncSession mock whose begin() works as an async context manager."""
    session = AsyncMock()
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    session.begin = MagicMock(return_value=transaction)
    session.in_transaction = MagicMock(return_value=False)
    return session


@pytest.fixture
def orders_table() -> TableDescriptor:
    """An ``orders`` table with a few typed user columns."""
    return build_table(
        "orders",
        [
            ("status", DataType.TEXT, {"is_nullable": False}),
            ("total", DataType.DECIMAL),
            ("quantity", DataType.INTEGER),
            ("email", DataType.EMAIL, {"is_unique": True}),
            ("customer_id", DataType.UUID),
            ("paid", DataType.BOOLEAN, {"default_value": "false"}),
        ],
    )


@pytest.fixture
def customers_table() -> TableDescriptor:
    return build_table(
        "customers",
        [("name", DataType.TEXT, {"is_nullable": False}), ("region", DataType.TEXT)],
    )
