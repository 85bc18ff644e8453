"""Query translation port.

Turns a logical QuerySpec into executable SQL once the descriptors of the
base table and every joined table are known.
"""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable
from uuid import UUID

from data.domain.query import AggregateFunction, QuerySpec, TranslatedQuery
from shared_kernel.schema_primitives import TableDescriptor


@runtime_checkable
class IQueryTranslator(Protocol):
    """Translates logical queries into tenant-scoped physical SQL.

    ``joined`` maps each joined table's logical name to its descriptor.
    Every translation adds the tenant predicate on the base table.
    """

    def translate_select(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
    ) -> TranslatedQuery:
        ...

    def translate_count(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
    ) -> TranslatedQuery:
        ...

    def translate_aggregate(
        self,
        spec: QuerySpec,
        base: TableDescriptor,
        joined: Mapping[str, TableDescriptor],
        tenant_id: UUID,
        function: AggregateFunction,
        column: str,
    ) -> TranslatedQuery:
        """Translate a single scalar aggregate over the filtered rows."""
        ...

    def translate_where(
        self, spec: QuerySpec, base: TableDescriptor, tenant_id: UUID
    ) -> TranslatedQuery:
        """Translate only the filter, as a WHERE clause body for batch DML.

        Raises:
            ValidationError: If the spec joins other tables
        """
        ...

    def render_logical(self, spec: QuerySpec) -> TranslatedQuery:
        """Render the query with logical names, for diagnostics only."""
        ...
