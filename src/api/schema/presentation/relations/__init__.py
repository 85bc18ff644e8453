"""Relations aggregate presentation: routes and models."""

from schema.presentation.relations.routes import router

__all__ = ["router"]
