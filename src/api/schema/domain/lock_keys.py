"""Lock resource keys for schema objects."""

from __future__ import annotations


def resource_key(kind: str, resource_id: object) -> str:
    """Build a lock resource key such as ``table:{id}``."""
    return f"{kind}:{resource_id}"


def table_resource_key(table_id: object) -> str:
    """Lock resource key for a dynamic table."""
    return resource_key("table", table_id)
