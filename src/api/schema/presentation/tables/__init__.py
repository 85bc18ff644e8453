"""Tables aggregate presentation: routes and models."""

from schema.presentation.tables.routes import router

__all__ = ["router"]
