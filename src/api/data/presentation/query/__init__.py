"""Query presentation: structured logical queries."""

from data.presentation.query.routes import router

__all__ = ["router"]
