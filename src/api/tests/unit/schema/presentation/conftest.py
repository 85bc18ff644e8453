"""Fixtures for schema route tests."""

from unittest.mock import create_autospec

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from schema.application.services import SchemaService
from schema.dependencies import get_schema_service
from schema.presentation import router


@pytest.fixture
def mock_service():
    return create_autospec(SchemaService, instance=True)


@pytest.fixture
def client(mock_service) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_schema_service] = lambda: mock_service
    return TestClient(app)
