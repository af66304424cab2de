"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from datachef_api.exceptions import StorageError

ROUTER_HEALTH = APIRouter(tags=["Health"])


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000+00:00",
                        "service": "Data Chef",
                        "version": "1.0.0",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Lightweight; does not check the catalog database, storage or engine.
    Used by load balancers and container liveness probes.
    """
    settings = request.app.state.settings

    response_data = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.app_name,
        "version": settings.app_version,
    }

    logger.debug("Health check requested", status="healthy")

    return JSONResponse(status_code=status.HTTP_200_OK, content=response_data)


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness check",
    description="Checks the catalog database and the object storage bucket",
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {
            "description": "A dependency is unavailable",
            "content": {
                "application/json": {
                    "example": {"status": "unavailable", "checks": {"database": False, "storage": True}}
                }
            },
        }
    },
)
async def readiness_check(request: Request):
    """Readiness probe: every configured dependency must answer."""
    checks = {}

    db_pool = getattr(request.app.state, "db_pool", None)
    checks["database"] = await db_pool.health_check() if db_pool is not None else False

    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        checks["storage"] = False
    else:
        try:
            await storage.list_path("")
            checks["storage"] = True
        except StorageError as e:
            logger.warning(f"Storage readiness check failed: {e.message}")
            checks["storage"] = False

    ready = all(checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )
