"""Tenant context FastAPI dependency.

Resolves the tenant from the X-Tenant-ID request header. Authentication
happens upstream; by the time a request reaches the engine the gateway has
already vouched for the header value, so the engine only validates its shape.

Usage in FastAPI routes:
    @router.get("/example")
    async def example(
        tenant: Annotated[TenantContext, Depends(get_tenant_context)],
    ):
        # tenant.tenant_id is the resolved UUID
        ...
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from shared_kernel.middleware.observability import (
    DefaultTenantContextProbe,
    TenantContextProbe,
)
from shared_kernel.middleware.tenant_context import TenantContext


def get_tenant_context_probe() -> TenantContextProbe:
    """Get TenantContextProbe instance."""
    return DefaultTenantContextProbe()


def resolve_tenant_context(
    x_tenant_id: str | None,
    probe: TenantContextProbe,
) -> TenantContext:
    """Resolve a tenant context from a raw header value.

    Args:
        x_tenant_id: The X-Tenant-ID header value, or None if missing.
        probe: Domain probe for observability.

    Returns:
        TenantContext with the parsed tenant UUID.

    Raises:
        HTTPException 400: If the header is missing or not a valid UUID.
    """
    if x_tenant_id is None or not x_tenant_id.strip():
        probe.tenant_header_missing()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "TENANT_REQUIRED",
                "message": "X-Tenant-ID header is required",
            },
        )

    try:
        tenant_id = UUID(x_tenant_id.strip())
    except ValueError:
        probe.invalid_tenant_id_format(raw_value=x_tenant_id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_TENANT_ID",
                "message": "X-Tenant-ID header must be a valid UUID",
            },
        )

    probe.tenant_resolved_from_header(tenant_id=str(tenant_id))
    return TenantContext(tenant_id=tenant_id, source="header")


def get_tenant_context(
    probe: Annotated[TenantContextProbe, Depends(get_tenant_context_probe)],
    x_tenant_id: Annotated[str | None, Header(alias="X-Tenant-ID")] = None,
) -> TenantContext:
    """FastAPI dependency resolving the request's tenant."""
    return resolve_tenant_context(x_tenant_id=x_tenant_id, probe=probe)
