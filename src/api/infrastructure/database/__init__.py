"""Database infrastructure - shared engine, session and ORM primitives."""

from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_session,
    get_write_session,
)
from infrastructure.database.models import METADATA_SCHEMA, Base, TimestampMixin

__all__ = [
    "METADATA_SCHEMA",
    "Base",
    "TimestampMixin",
    "close_database_connections",
    "get_read_session",
    "get_write_session",
]
