"""Data presentation layer.

Record, batch and query routes share the ``/data`` prefix. Tables and
columns are addressed by logical name; tenants by the X-Tenant-ID header.
"""

from __future__ import annotations

from fastapi import APIRouter

from data.presentation import batch, query, records

router = APIRouter(
    prefix="/data",
    tags=["data"],
)

router.include_router(records.router)
router.include_router(batch.router)
router.include_router(query.router)

__all__ = ["router"]
