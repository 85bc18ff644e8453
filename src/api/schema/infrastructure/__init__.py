"""Schema infrastructure layer: PostgreSQL adapters for the schema ports."""

from schema.infrastructure.advisory_lock import (
    PostgresLockCoordinator,
    compute_lock_key,
)
from schema.infrastructure.change_log_repository import ChangeLogRepository
from schema.infrastructure.ddl_executor import SessionDdlExecutor
from schema.infrastructure.metadata_repository import MetadataRepository

__all__ = [
    "ChangeLogRepository",
    "MetadataRepository",
    "PostgresLockCoordinator",
    "SessionDdlExecutor",
    "compute_lock_key",
]
