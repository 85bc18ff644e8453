"""Batch presentation: mixed batches and filtered bulk operations."""

from data.presentation.batch.routes import router

__all__ = ["router"]
