"""Pydantic models for record API requests and responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UpsertRequest(BaseModel):
    """Request model for inserting or updating a record by key columns."""

    data: dict[str, Any]
    key_columns: list[str] = Field(
        ..., min_length=1, description="Columns covered by a unique constraint"
    )


class RecordPage(BaseModel):
    """One page of records with the total number of matches."""

    items: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
