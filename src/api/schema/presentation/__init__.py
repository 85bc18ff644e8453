"""Schema presentation layer - aggregate-based organization.

Each schema object kind (tables, columns, indexes, relations) has its own
package with routes and models. All routes are tenant scoped through the
X-Tenant-ID header resolved by the schema service dependency.
"""

from __future__ import annotations

from fastapi import APIRouter

from schema.presentation import columns, indexes, relations, tables

router = APIRouter(
    prefix="/schema",
    tags=["schema"],
)

router.include_router(tables.router)
router.include_router(columns.router)
router.include_router(indexes.router)
router.include_router(relations.router)

__all__ = ["router"]
