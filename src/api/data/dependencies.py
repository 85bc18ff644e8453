"""Dependency injection for the Data bounded context.

Every component built for one request shares the request's write session,
so a DataService and the query builders it hands out run on one
connection and one transaction at a time.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from data.application.observability import (
    DataServiceProbe,
    DefaultDataServiceProbe,
    DefaultQueryProbe,
    QueryProbe,
)
from data.application.services import DataService
from data.infrastructure import MetadataTableCatalog, QueryTranslator, RowRepository
from infrastructure.database.dependencies import get_write_session


def get_data_service_probe() -> DataServiceProbe:
    return DefaultDataServiceProbe()


def get_query_probe() -> QueryProbe:
    return DefaultQueryProbe()


def get_table_catalog(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> MetadataTableCatalog:
    return MetadataTableCatalog(session=session)


def get_row_repository(
    session: Annotated[AsyncSession, Depends(get_write_session)],
) -> RowRepository:
    return RowRepository(session=session)


def get_query_translator() -> QueryTranslator:
    """Get the query translator. It is stateless, so any instance will do."""
    return QueryTranslator()


def get_data_service(
    session: Annotated[AsyncSession, Depends(get_write_session)],
    catalog: Annotated[MetadataTableCatalog, Depends(get_table_catalog)],
    rows: Annotated[RowRepository, Depends(get_row_repository)],
    translator: Annotated[QueryTranslator, Depends(get_query_translator)],
    probe: Annotated[DataServiceProbe, Depends(get_data_service_probe)],
    query_probe: Annotated[QueryProbe, Depends(get_query_probe)],
) -> DataService:
    """Get DataService instance.

    Args:
        session: Database session for transaction management
        catalog: Table catalog (shares session via FastAPI dependency caching)
        rows: Row repository (same session)
        translator: Query translator
        probe: Data service probe for observability
        query_probe: Probe for query builder terminals

    Returns:
        DataService instance
    """
    return DataService(
        session=session,
        catalog=catalog,
        rows=rows,
        translator=translator,
        probe=probe,
        query_probe=query_probe,
    )
