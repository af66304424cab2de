from typing import List

import pydantic
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import File
from fastapi import HTTPException
from fastapi import Path
from fastapi import UploadFile
from fastapi import status
from loguru import logger

from datachef_api.catalog.parsers import parse_pipe_file
from datachef_api.catalog.pipe_manager import PipeManager
from datachef_api.dependencies import get_pipe_manager
from datachef_api.dependencies import get_storage
from datachef_api.exceptions import PipeValidationError
from datachef_api.models.extraction import extract_records
from datachef_api.models.pipe import Pipe
from datachef_api.models.pipe import PipeSpec
from datachef_api.models.pipe import PipeUpdate
from datachef_api.models.validation import validate_field_extraction
from datachef_api.schemas.schemas import DeletePipeResponse
from datachef_api.schemas.schemas import ImportPipesResponse
from datachef_api.schemas.schemas import PipeFile
from datachef_api.schemas.schemas import PipeFilesResponse
from datachef_api.schemas.schemas import PreviewExtractionRequest
from datachef_api.schemas.schemas import PreviewExtractionResponse
from datachef_api.storage.object_storage import PLACEHOLDER_NAME
from datachef_api.storage.object_storage import ObjectStorage

ROUTER_PIPES = APIRouter(tags=["Pipes"])

_NOT_FOUND_RESPONSE = {
    "description": "Pipe not found",
    "content": {
        "application/json": {"example": {"detail": "Pipe 'a1b2' not found", "error_type": "NotFoundError"}}
    },
}
_INVALID_SPEC_RESPONSE = {
    "description": "Pipe specification rejected",
    "content": {
        "application/json": {
            "example": {
                "detail": "Pipe specification is invalid",
                "error_type": "PipeValidationError",
                "issues": [{"field": "storagePath", "message": "storagePath must begin with '/'"}],
            }
        }
    },
}


@ROUTER_PIPES.get("/pipes", response_model=List[Pipe])
async def list_pipes(pipe_manager: PipeManager = Depends(get_pipe_manager)):
    """List all pipes, most recently updated first."""
    pipes = await pipe_manager.list_pipes()
    logger.info("Retrieved pipes", count=len(pipes))
    return pipes


@ROUTER_PIPES.post(
    "/pipes",
    response_model=Pipe,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_422_UNPROCESSABLE_CONTENT: _INVALID_SPEC_RESPONSE,
        status.HTTP_502_BAD_GATEWAY: {"description": "Storage folder could not be created; no pipe was stored"},
    },
)
async def create_pipe(spec: PipeSpec, pipe_manager: PipeManager = Depends(get_pipe_manager)):
    """Create a pipe and its storage folder."""
    return await pipe_manager.create_pipe(spec)


@ROUTER_PIPES.post(
    "/pipes/import",
    response_model=ImportPipesResponse,
    status_code=status.HTTP_201_CREATED,
    responses={status.HTTP_422_UNPROCESSABLE_CONTENT: _INVALID_SPEC_RESPONSE},
)
async def import_pipes(
    file: UploadFile = File(..., description="YAML (.yaml/.yml) or JSON (.json) pipe definition file"),
    pipe_manager: PipeManager = Depends(get_pipe_manager),
):
    """
    Create pipes from a YAML or JSON file.

    The file may hold one pipe, a list of pipes, or a mapping with a top-level
    'pipes' list. Pipes are created in file order; the first rejected pipe
    stops the import and earlier pipes stay created.
    """
    content = await file.read()
    try:
        specs = parse_pipe_file(content, file.filename or "")
    except pydantic.ValidationError:
        raise
    except ValueError as e:
        logger.warning("Pipe file rejected", filename=file.filename, error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    created = [await pipe_manager.create_pipe(spec) for spec in specs]
    logger.info("Pipes imported", filename=file.filename, count=len(created))
    return ImportPipesResponse(message=f"Imported {len(created)} pipe(s)", pipes=created)


@ROUTER_PIPES.post(
    "/pipes/preview-extraction",
    response_model=PreviewExtractionResponse,
    responses={status.HTTP_422_UNPROCESSABLE_CONTENT: _INVALID_SPEC_RESPONSE},
)
async def preview_extraction(request: PreviewExtractionRequest):
    """Run a field extraction rule over sample lines without touching the engine."""
    issues = validate_field_extraction(request.field_extraction)
    if issues:
        raise PipeValidationError(issues, message="Field extraction rule is invalid")

    result = extract_records(request.field_extraction, request.lines)
    logger.info(
        "Extraction preview",
        method=request.field_extraction.method,
        lines=len(request.lines),
        records=len(result["records"]),
        skipped=result["skipped"],
        errors=len(result["errors"]),
    )
    return result


@ROUTER_PIPES.get("/pipes/{pipe_id}", response_model=Pipe, responses={status.HTTP_404_NOT_FOUND: _NOT_FOUND_RESPONSE})
async def get_pipe(
    pipe_id: str = Path(..., min_length=1),
    pipe_manager: PipeManager = Depends(get_pipe_manager),
):
    """Get a pipe by id."""
    return await pipe_manager.get_pipe(pipe_id)


@ROUTER_PIPES.put(
    "/pipes/{pipe_id}",
    response_model=Pipe,
    responses={
        status.HTTP_404_NOT_FOUND: _NOT_FOUND_RESPONSE,
        status.HTTP_422_UNPROCESSABLE_CONTENT: _INVALID_SPEC_RESPONSE,
    },
)
async def update_pipe(
    pipe_id: str = Path(..., min_length=1),
    changes: PipeUpdate = Body(...),
    pipe_manager: PipeManager = Depends(get_pipe_manager),
):
    """Update any pipe field except id and createdAt."""
    return await pipe_manager.update_pipe(pipe_id, changes)


@ROUTER_PIPES.delete(
    "/pipes/{pipe_id}",
    response_model=DeletePipeResponse,
    responses={status.HTTP_404_NOT_FOUND: _NOT_FOUND_RESPONSE},
)
async def delete_pipe(
    pipe_id: str = Path(..., min_length=1),
    pipe_manager: PipeManager = Depends(get_pipe_manager),
):
    """
    Delete a pipe and its storage folder.

    The pipe is removed even when its folder cannot be deleted; folderDeleted
    and folderError report what happened to the folder.
    """
    deletion = await pipe_manager.delete_pipe(pipe_id)
    message = "Pipe deleted" if deletion.folder_deleted else "Pipe deleted; storage folder could not be removed"
    return DeletePipeResponse(
        message=message,
        pipe_id=deletion.pipe_id,
        folder_deleted=deletion.folder_deleted,
        folder_error=deletion.folder_error,
    )


@ROUTER_PIPES.get(
    "/pipes/{pipe_id}/files",
    response_model=PipeFilesResponse,
    responses={status.HTTP_404_NOT_FOUND: _NOT_FOUND_RESPONSE},
)
async def list_pipe_files(
    pipe_id: str = Path(..., min_length=1),
    pipe_manager: PipeManager = Depends(get_pipe_manager),
    storage: ObjectStorage = Depends(get_storage),
):
    """List every object under the pipe's storage path and whether its file pattern accepts it."""
    pipe = await pipe_manager.get_pipe(pipe_id)
    objects = await storage.list_objects(pipe.storage_path)
    files = [
        PipeFile(key=obj["key"], size=obj["size"], eligible=pipe.file_pattern.matches(obj["key"], obj["size"]))
        for obj in objects
        if obj["key"].rsplit("/", 1)[-1] != PLACEHOLDER_NAME
    ]
    return PipeFilesResponse(pipe_id=pipe.id, storage_path=pipe.storage_path, files=files)
