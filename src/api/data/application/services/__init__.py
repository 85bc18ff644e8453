"""Application services for the Data bounded context."""

from data.application.services.data_service import DataService

__all__ = ["DataService"]
