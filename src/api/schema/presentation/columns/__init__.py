"""Columns aggregate presentation: routes and models."""

from schema.presentation.columns.routes import router

__all__ = ["router"]
