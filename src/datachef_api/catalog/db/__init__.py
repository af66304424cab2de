"""Catalog database access (PostgreSQL via asyncpg)."""

from datachef_api.catalog.db.pool import CatalogDBPool
from datachef_api.catalog.db.repository_execution import ExecutionRepository
from datachef_api.catalog.db.repository_pipe import PipeRepository

__all__ = [
    "CatalogDBPool",
    "ExecutionRepository",
    "PipeRepository",
]
