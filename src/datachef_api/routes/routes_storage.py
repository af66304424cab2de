from typing import List
from urllib.parse import quote

from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import File
from fastapi import Form
from fastapi import HTTPException
from fastapi import Query
from fastapi import Request
from fastapi import UploadFile
from fastapi import status
from fastapi.responses import StreamingResponse
from loguru import logger

from datachef_api.dependencies import get_settings
from datachef_api.dependencies import get_storage
from datachef_api.exceptions import NotFoundError
from datachef_api.schemas.schemas import CreateFolderRequest
from datachef_api.schemas.schemas import CreateFolderResponse
from datachef_api.schemas.schemas import DeleteStorageRequest
from datachef_api.schemas.schemas import DeleteStorageResponse
from datachef_api.schemas.schemas import ListStorageResponse
from datachef_api.schemas.schemas import UploadResponse
from datachef_api.settings import Settings
from datachef_api.storage.object_storage import ObjectStorage
from datachef_api.storage.object_storage import normalize_path

ROUTER_STORAGE = APIRouter(tags=["Storage"])

MAX_FILES_PER_UPLOAD = 100


@ROUTER_STORAGE.get("/storage", response_model=ListStorageResponse)
async def list_storage(
    path: str = Query(default="/", description="Folder to list; '/' lists the top-level folders"),
    storage: ObjectStorage = Depends(get_storage),
):
    """List the immediate children of a folder."""
    items = await storage.list_path(path)
    return ListStorageResponse(path=path, items=items)


@ROUTER_STORAGE.post("/storage/folder", response_model=CreateFolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(request: CreateFolderRequest, storage: ObjectStorage = Depends(get_storage)):
    """Create an empty folder."""
    key = await storage.create_folder(request.path)
    return CreateFolderResponse(path="/" + key)


@ROUTER_STORAGE.post(
    "/storage/upload",
    response_model=UploadResponse,
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "No files, too many files, or upload to the root folder"},
        status.HTTP_413_CONTENT_TOO_LARGE: {"description": "A file exceeds the upload size limit"},
    },
)
async def upload_files(
    request: Request,
    path: str = Form(default="/"),
    files: List[UploadFile] = File(...),
    storage: ObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
):
    """
    Upload files into a folder.

    When the folder is some pipe's storage path, that pipe starts running in
    the background once the upload completes (pipeExecuted=true). The
    response does not wait for the execution.
    """
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")
    if len(files) > MAX_FILES_PER_UPLOAD:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {MAX_FILES_PER_UPLOAD} files can be uploaded at once",
        )
    if not normalize_path(path):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Files cannot be uploaded to the root folder"
        )

    contents = []
    for upload in files:
        data = await upload.read()
        if len(data) > settings.max_upload_size_bytes:
            logger.warning("Upload rejected: file too large", filename=upload.filename, size=len(data))
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail=f"File '{upload.filename}' exceeds {settings.max_upload_size_bytes} bytes",
            )
        contents.append((upload, data))

    uploaded: List[str] = []
    for upload, data in contents:
        uploaded.append(await storage.upload_file(path, upload.filename or "", data, upload.content_type))

    orchestrator = getattr(request.app.state, "orchestrator", None)
    pipe = await orchestrator.trigger_for_upload(path) if orchestrator is not None else None

    return UploadResponse(files=uploaded, pipe_executed=pipe is not None, pipe_id=pipe.id if pipe else None)


@ROUTER_STORAGE.delete("/storage", response_model=DeleteStorageResponse)
async def delete_storage_item(
    request: DeleteStorageRequest = Body(...),
    storage: ObjectStorage = Depends(get_storage),
):
    """Delete a file, or a folder with everything under it."""
    deleted = await storage.delete(request.path, request.type)
    return DeleteStorageResponse(objects_deleted=deleted)


@ROUTER_STORAGE.get(
    "/storage/download",
    responses={status.HTTP_404_NOT_FOUND: {"description": "File not found"}},
)
async def download_file(
    path: str = Query(..., min_length=1),
    storage: ObjectStorage = Depends(get_storage),
):
    """Stream a file's bytes."""
    stat = await storage.get_file_stat(path)
    if stat is None:
        raise NotFoundError(f"File '{path}' not found")

    file_name = normalize_path(path).rsplit("/", 1)[-1] or "download"
    headers = {"Content-Disposition": f"attachment; filename=\"{quote(file_name)}\""}
    if stat["size"] is not None:
        headers["Content-Length"] = str(stat["size"])

    return StreamingResponse(
        storage.get_file_stream(path),
        media_type=stat["content_type"],
        headers=headers,
    )
