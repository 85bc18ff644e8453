"""Domain-Oriented Observability for the data application layer."""

from data.application.observability.data_service_probe import (
    DataServiceProbe,
    DefaultDataServiceProbe,
)
from data.application.observability.query_probe import (
    DefaultQueryProbe,
    QueryProbe,
)

__all__ = [
    "DataServiceProbe",
    "DefaultDataServiceProbe",
    "DefaultQueryProbe",
    "QueryProbe",
]
