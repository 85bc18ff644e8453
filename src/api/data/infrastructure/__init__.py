"""Data infrastructure layer: query translation and raw row access."""

from data.infrastructure.query_translator import QueryTranslator
from data.infrastructure.row_repository import RowRepository
from data.infrastructure.table_catalog import MetadataTableCatalog

__all__ = [
    "MetadataTableCatalog",
    "QueryTranslator",
    "RowRepository",
]
