"""Data application layer: query builder and row-level services."""
