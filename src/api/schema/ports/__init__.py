"""Ports (interfaces) for the schema bounded context."""

from schema.ports.protocols import (
    IDdlExecutor,
    ILockCoordinator,
    LockHandle,
    SchemaChangeListener,
)
from schema.ports.repositories import IChangeLogRepository, IMetadataRepository

__all__ = [
    "IChangeLogRepository",
    "IDdlExecutor",
    "ILockCoordinator",
    "IMetadataRepository",
    "LockHandle",
    "SchemaChangeListener",
]
