"""Indexes aggregate presentation: routes and models."""

from schema.presentation.indexes.routes import router

__all__ = ["router"]
