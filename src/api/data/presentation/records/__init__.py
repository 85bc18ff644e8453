"""Records presentation: single-row routes and models."""

from data.presentation.records.routes import router

__all__ = ["router"]
