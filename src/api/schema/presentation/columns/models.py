"""Pydantic models for column API requests."""

from __future__ import annotations

from pydantic import BaseModel, Field

from shared_kernel.schema_primitives import DataType


class AddColumnRequest(BaseModel):
    """Request model for adding a column to a table."""

    expected_version: int = Field(..., ge=1, description="Version the caller last saw")
    logical_name: str = Field(..., min_length=1, max_length=255)
    data_type: DataType
    is_nullable: bool = Field(default=True)
    is_unique: bool = Field(default=False)
    is_indexed: bool = Field(default=False)
    default_value: str | None = None
    check_expression: str | None = None


class UpdateColumnRequest(BaseModel):
    """Request model for renaming a column or changing its default."""

    expected_version: int = Field(..., ge=1, description="Version the caller last saw")
    logical_name: str | None = Field(default=None, min_length=1, max_length=255)
    default_value: str | None = None
