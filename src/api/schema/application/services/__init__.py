"""Application services for the Schema bounded context."""

from schema.application.services.schema_service import SchemaService

__all__ = ["SchemaService"]
