"""FastAPI dependencies for accessing app state."""

from fastapi import Request

from datachef_api.catalog.pipe_manager import PipeManager
from datachef_api.exceptions import ConfigError
from datachef_api.execution.runner import ExecutionOrchestrator
from datachef_api.settings import Settings
from datachef_api.storage.object_storage import ObjectStorage
from datachef_api.tables.query import TableQueryService


def get_settings(request: Request) -> Settings:
    """
    Get application settings from request state.

    Parameters
    ----------
    request : Request
        FastAPI request object

    Returns
    -------
    Settings
        Application settings instance
    """
    return request.app.state.settings


def get_storage(request: Request) -> ObjectStorage:
    """Object storage bridge; ConfigError when storage settings are unusable."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise ConfigError("Object storage is not configured")
    return storage


def get_pipe_manager(request: Request) -> PipeManager:
    """Pipe catalog service; ConfigError when no catalog database is configured."""
    pipe_manager = getattr(request.app.state, "pipe_manager", None)
    if pipe_manager is None:
        raise ConfigError("Pipe catalog is not configured (set DATABASE_URL)")
    return pipe_manager


def get_orchestrator(request: Request) -> ExecutionOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigError("Pipe catalog is not configured (set DATABASE_URL)")
    return orchestrator


def get_table_service(request: Request) -> TableQueryService:
    return request.app.state.table_service
