"""Tenant context value object for resolved tenant identification.

This module contains the pure value object that represents a resolved
tenant context. It is framework-agnostic and contains no business logic,
making it safe for the shared kernel.

The actual resolution logic (header extraction, UUID validation) lives in
the infrastructure dependency layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class TenantContext:
    """Resolved tenant context for the current request.

    This is a shared kernel value object used across bounded contexts
    to carry the resolved tenant identity.

    Attributes:
        tenant_id: The validated tenant identifier.
        source: How the tenant was resolved, 'header' if from X-Tenant-ID.
    """

    tenant_id: UUID
    source: str = "header"
