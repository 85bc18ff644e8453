"""Architecture tests using pytest-archon.

These tests enforce DDD architectural boundaries between layers
within the Schema and Data bounded contexts.
"""

import pytest
from pytest_archon import archrule

CONTEXTS = ["schema", "data"]


@pytest.mark.parametrize("context", CONTEXTS)
class TestDomainLayerBoundaries:
    """Tests that the domain layer has no forbidden dependencies."""

    def test_domain_does_not_import_infrastructure(self, context):
        """Domain layer should not depend on infrastructure.

        The domain layer holds value objects and validation rules and
        should not know about sessions, SQL execution or the HTTP layer.
        """
        (
            archrule(f"{context}_domain_no_infrastructure")
            .match(f"{context}.domain*")
            .should_not_import(f"{context}.infrastructure*", "infrastructure*")
            .check(context)
        )

    def test_domain_does_not_import_application(self, context):
        (
            archrule(f"{context}_domain_no_application")
            .match(f"{context}.domain*")
            .should_not_import(f"{context}.application*")
            .check(context)
        )

    def test_domain_is_framework_agnostic(self, context):
        """Domain objects should not depend on FastAPI or SQLAlchemy."""
        (
            archrule(f"{context}_domain_no_frameworks")
            .match(f"{context}.domain*")
            .should_not_import("fastapi*", "starlette*", "sqlalchemy*")
            .check(context)
        )


@pytest.mark.parametrize("context", CONTEXTS)
class TestPortsLayerBoundaries:
    def test_ports_does_not_import_infrastructure(self, context):
        """Ports define interfaces; they should not know their implementations."""
        (
            archrule(f"{context}_ports_no_infrastructure")
            .match(f"{context}.ports*")
            .should_not_import(f"{context}.infrastructure*")
            .check(context)
        )

    def test_ports_does_not_import_application(self, context):
        (
            archrule(f"{context}_ports_no_application")
            .match(f"{context}.ports*")
            .should_not_import(f"{context}.application*")
            .check(context)
        )


@pytest.mark.parametrize("context", CONTEXTS)
class TestApplicationLayerBoundaries:
    def test_application_does_not_import_infrastructure(self, context):
        """Application services depend on ports, not on implementations.

        Repositories, the lock coordinator, the DDL executor and the query
        translator are all injected through their protocols.
        """
        (
            archrule(f"{context}_application_no_infrastructure")
            .match(f"{context}.application*")
            .should_not_import(f"{context}.infrastructure*")
            .check(context)
        )

    def test_application_does_not_import_presentation(self, context):
        (
            archrule(f"{context}_application_no_presentation")
            .match(f"{context}.application*")
            .should_not_import(f"{context}.presentation*", "fastapi*")
            .check(context)
        )


class TestInfrastructureLayerBoundaries:
    @pytest.mark.parametrize("context", CONTEXTS)
    def test_infrastructure_does_not_import_application(self, context):
        """Infrastructure is used BY the application layer, not vice versa."""
        (
            archrule(f"{context}_infrastructure_no_application")
            .match(f"{context}.infrastructure*")
            .should_not_import(f"{context}.application*")
            .check(context)
        )


class TestContextBoundaries:
    def test_schema_does_not_import_data(self):
        """Schema management knows nothing about row-level data access."""
        (
            archrule("schema_no_data")
            .match("schema*")
            .should_not_import("data", "data.*")
            .check("schema")
        )

    def test_data_core_does_not_import_schema(self):
        """Only the data infrastructure may read the schema context's metadata."""
        (
            archrule("data_core_no_schema")
            .match("data.domain*", "data.ports*", "data.application*")
            .should_not_import("schema*")
            .check("data")
        )

    def test_shared_kernel_does_not_import_contexts(self):
        (
            archrule("shared_kernel_no_contexts")
            .match("shared_kernel*")
            .should_not_import("schema*", "data", "data.*", "infrastructure*")
            .check("shared_kernel")
        )

    def test_infrastructure_database_does_not_import_contexts(self):
        """Engines and sessions are context-agnostic."""
        (
            archrule("infrastructure_database_no_contexts")
            .match("infrastructure.database*", "infrastructure.settings")
            .should_not_import("schema*", "data", "data.*")
            .check("infrastructure")
        )
