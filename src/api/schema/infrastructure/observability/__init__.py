"""Domain-Oriented Observability for the schema infrastructure layer."""

from schema.infrastructure.observability.lock_probe import (
    DefaultLockProbe,
    LockProbe,
)
from schema.infrastructure.observability.repository_probe import (
    DefaultMetadataRepositoryProbe,
    MetadataRepositoryProbe,
)

__all__ = [
    "DefaultLockProbe",
    "DefaultMetadataRepositoryProbe",
    "LockProbe",
    "MetadataRepositoryProbe",
]
