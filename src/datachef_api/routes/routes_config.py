from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from loguru import logger

from datachef_api.dependencies import get_settings
from datachef_api.schemas.schemas import ConfigUpdateRequest
from datachef_api.settings import Settings

ROUTER_CONFIG = APIRouter(tags=["Config"])


@ROUTER_CONFIG.get("/config")
async def get_config(settings: Settings = Depends(get_settings)):
    """Runtime-updatable settings; credentials are masked."""
    return settings.runtime_view()


@ROUTER_CONFIG.put("/config")
async def update_config(request: Request, changes: ConfigUpdateRequest, settings: Settings = Depends(get_settings)):
    """
    Update storage, engine and table catalog settings at runtime.

    The storage client is rebuilt from the new settings; the running engine
    process (if any) keeps the settings it was started with.
    """
    from datachef_api.main import apply_settings

    updates = changes.model_dump(exclude_unset=True)
    new_settings = settings.with_updates(updates)
    apply_settings(request.app, new_settings)
    logger.info("Settings updated", fields=sorted(updates))
    return new_settings.runtime_view()
