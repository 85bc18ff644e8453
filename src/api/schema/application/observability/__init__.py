"""Domain-Oriented Observability for the schema application layer."""

from schema.application.observability.schema_service_probe import (
    DefaultSchemaServiceProbe,
    SchemaServiceProbe,
)

__all__ = [
    "DefaultSchemaServiceProbe",
    "SchemaServiceProbe",
]
