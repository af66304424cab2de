from textwrap import dedent
from typing import Optional

import pydantic
from fastapi import FastAPI
from fastapi.routing import APIRoute
from loguru import logger

from datachef_api.catalog.db.pool import CatalogDBPool
from datachef_api.catalog.db.repository_execution import ExecutionRepository
from datachef_api.catalog.db.repository_pipe import PipeRepository
from datachef_api.catalog.pipe_manager import PipeManager
from datachef_api.engine.bridge import EngineBridge
from datachef_api.errors import handle_broad_exceptions
from datachef_api.errors import handle_datachef_errors
from datachef_api.errors import handle_pydantic_validation_errors
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import DataChefError
from datachef_api.exceptions import StorageError
from datachef_api.execution.runner import ExecutionOrchestrator
from datachef_api.monitoring.logger import configure_logger
from datachef_api.monitoring.request_context import RequestContextMiddleware
from datachef_api.routes.routes_config import ROUTER_CONFIG
from datachef_api.routes.routes_execution import ROUTER_EXECUTION
from datachef_api.routes.routes_health import ROUTER_HEALTH
from datachef_api.routes.routes_pipes import ROUTER_PIPES
from datachef_api.routes.routes_storage import ROUTER_STORAGE
from datachef_api.routes.routes_tables import ROUTER_TABLES
from datachef_api.settings import Settings
from datachef_api.storage.object_storage import ObjectStorage
from datachef_api.tables.query import TableQueryService


def _build_storage(settings: Settings) -> Optional[ObjectStorage]:
    try:
        return ObjectStorage.from_settings(settings)
    except ConfigError as e:
        logger.error(f"Object storage disabled: {e.message}")
        return None


def attach_catalog_services(
    app: FastAPI,
    pipe_repository,
    execution_repository=None,
) -> None:
    """Wire the pipe catalog and the execution orchestrator onto app.state."""
    settings: Settings = app.state.settings
    pipe_manager = PipeManager(pipe_repository, app.state.storage)
    app.state.pipe_manager = pipe_manager
    app.state.orchestrator = ExecutionOrchestrator(
        settings=settings,
        pipe_manager=pipe_manager,
        storage=app.state.storage,
        bridge=app.state.bridge,
        history=execution_repository,
    )


def apply_settings(app: FastAPI, settings: Settings) -> None:
    """
    Swap the application settings at runtime.

    Raises:
        ConfigError: If the new storage settings are unusable; nothing is changed
    """
    storage = ObjectStorage.from_settings(settings)

    app.state.settings = settings
    app.state.storage = storage
    app.state.bridge.settings = settings
    app.state.table_service.settings = settings

    pipe_manager = getattr(app.state, "pipe_manager", None)
    if pipe_manager is not None:
        pipe_manager.storage = storage
    orchestrator = getattr(app.state, "orchestrator", None)
    if orchestrator is not None:
        orchestrator.settings = settings
        orchestrator.storage = storage


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create a FastAPI application.

    Configuration is loaded from environment variables (or a .env file) via pydantic-settings.
    """
    settings = settings or Settings()

    configure_logger(settings.log_level)

    logger.info(
        "Configuration loaded successfully",
        database_configured=bool(settings.database_url),
        storage_endpoint=settings.storage_endpoint,
        storage_bucket=settings.storage_bucket,
        engine_command_override=bool(settings.engine_command),
    )

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=dedent(
            """
        Declarative file-to-table pipes.

        | Area | Notes |
        | --- | --- |
        | Pipes | Pipe specifications bound to storage folders |
        | Execution | Runs a pipe on the compute engine, one at a time |
        | Storage | Folder-style access to the object storage bucket |
        | Tables | Table listing, preview and SQL queries |
        """
        ),
        generate_unique_id_function=custom_generate_unique_id,
    )
    app.state.settings = settings
    app.state.storage = _build_storage(settings)
    app.state.bridge = EngineBridge(settings)
    app.state.table_service = TableQueryService(settings, app.state.bridge)
    app.state.db_pool = None
    app.state.pipe_manager = None
    app.state.orchestrator = None

    if settings.database_url and app.state.storage is not None:
        db_pool = CatalogDBPool(settings.database_url)
        app.state.db_pool = db_pool
        attach_catalog_services(app, PipeRepository(db_pool), ExecutionRepository(db_pool))
        logger.info("Pipe catalog enabled")
    else:
        logger.warning("Pipe catalog disabled (DATABASE_URL not set or storage unavailable)")

    @app.on_event("startup")
    async def startup():
        """Prepare the bucket, the catalog schema and the default pipes."""
        storage = app.state.storage
        if storage is not None:
            try:
                await storage.ensure_bucket()
            except StorageError as e:
                logger.warning(f"Bucket check failed, continuing: {e.message}")

        if app.state.db_pool is not None:
            await app.state.db_pool.initialize()
            if app.state.settings.seed_default_pipes:
                created = await app.state.pipe_manager.seed_default_pipes()
                logger.info("Default pipes checked", created=len(created))

    @app.on_event("shutdown")
    async def shutdown():
        """Stop the running execution and close the catalog pool."""
        if app.state.orchestrator is not None:
            await app.state.orchestrator.close()
        if app.state.db_pool is not None:
            await app.state.db_pool.close()

    # Add request context middleware for tracking who/where requests come from
    app.add_middleware(RequestContextMiddleware)
    app.include_router(ROUTER_HEALTH, prefix="/api")
    app.include_router(ROUTER_PIPES, prefix="/api")
    app.include_router(ROUTER_EXECUTION, prefix="/api")
    app.include_router(ROUTER_STORAGE, prefix="/api")
    app.include_router(ROUTER_TABLES, prefix="/api")
    app.include_router(ROUTER_CONFIG, prefix="/api")

    app.add_exception_handler(
        exc_class_or_status_code=pydantic.ValidationError,
        handler=handle_pydantic_validation_errors,
    )
    app.add_exception_handler(
        exc_class_or_status_code=DataChefError,
        handler=handle_datachef_errors,
    )

    app.middleware("http")(handle_broad_exceptions)

    return app


def custom_generate_unique_id(route: APIRoute):
    """
    Generate prettier `operationId`s in the OpenAPI schema.

    These become the function names in generated client SDKs.
    """
    if route.tags:
        return f"{route.tags[0]}-{route.name}"
    return route.name


if __name__ == "__main__":
    import uvicorn

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
