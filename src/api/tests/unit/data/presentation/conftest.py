"""Fixtures for data route tests."""

from unittest.mock import create_autospec

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from data.application.query_builder import QueryBuilder
from data.application.services import DataService
from data.dependencies import get_data_service
from data.presentation import router
from infrastructure.tenant_dependencies import get_tenant_context
from shared_kernel.middleware.tenant_context import TenantContext
from tests.unit.conftest import TENANT_ID


@pytest.fixture
def mock_builder():
    builder = create_autospec(QueryBuilder, instance=True)
    builder.to_logical_sql.return_value = 'SELECT * FROM "orders"'
    return builder


@pytest.fixture
def mock_service(mock_builder):
    service = create_autospec(DataService, instance=True)
    service.query.return_value = mock_builder
    return service


@pytest.fixture
def app(mock_service) -> FastAPI:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_data_service] = lambda: mock_service
    return app


@pytest.fixture
def client(app) -> TestClient:
    app.dependency_overrides[get_tenant_context] = lambda: TenantContext(tenant_id=TENANT_ID)
    return TestClient(app)
