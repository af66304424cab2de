"""Table listing, preview and SQL queries through the engine."""

from datachef_api.tables.query import TableQueryService

__all__ = ["TableQueryService"]
