"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from data.presentation import router as data_router
from infrastructure.database.dependencies import (
    close_database_connections,
    get_read_session,
)
from infrastructure.logging import configure_logging
from infrastructure.observability import DefaultConnectionProbe, DefaultStartupProbe
from infrastructure.settings import get_settings
from infrastructure.version import __version__
from schema.presentation import router as schema_router


@asynccontextmanager
async def morph_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Database engine lifecycle (created lazily, disposed on shutdown)
    """
    settings = get_settings()
    configure_logging(debug=settings.debug)
    probe = DefaultStartupProbe()
    probe.application_started(app_name=settings.app_name, version=__version__)

    yield

    probe.application_stopping()
    await close_database_connections()


app = FastAPI(
    title="Morph Engine API",
    description="Tenant-defined relational schemas and data as a service",
    version=__version__,
    lifespan=morph_lifespan,
)

# Bounded context routes
app.include_router(schema_router)
app.include_router(data_router)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/db")
async def health_db(
    session: Annotated[AsyncSession, Depends(get_read_session)],
) -> dict:
    """Check database connection health."""
    try:
        result = await session.execute(text("SELECT 1"))
        return {"status": "ok" if result.scalar() == 1 else "unhealthy", "connected": True}
    except Exception as e:
        DefaultConnectionProbe().health_check_failed(error=e)
        return {
            "status": "error",
            "connected": False,
            "error": type(e).__name__,
        }
