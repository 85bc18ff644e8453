"""Ports for the data bounded context."""

from data.ports.repositories import IRowRepository, ITableCatalog
from data.ports.translation import IQueryTranslator

__all__ = ["IQueryTranslator", "IRowRepository", "ITableCatalog"]
