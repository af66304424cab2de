"""
Pipe Manager

Catalog operations binding each pipe to its storage folder.

Lifecycle rules:
- create provisions the folder before the row is written; a folder failure
  leaves no row behind.
- update never touches id/createdAt and always advances updatedAt.
- delete attempts the folder first, but a folder failure does not block
  removal of the row; the failure is reported in the returned PipeDeletion.
"""

import uuid
from datetime import timedelta
from typing import List
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from datachef_api.exceptions import NotFoundError
from datachef_api.exceptions import PipeValidationError
from datachef_api.exceptions import StorageError
from datachef_api.models.execution import utc_now
from datachef_api.models.pipe import Pipe
from datachef_api.models.pipe import PipeSpec
from datachef_api.models.pipe import PipeUpdate
from datachef_api.models.validation import ValidationIssue
from datachef_api.models.validation import validate_pipe_spec
from datachef_api.storage.object_storage import ObjectStorage
from datachef_api.storage.object_storage import normalize_path

DEFAULT_PIPES = [
    {
        "name": "JSON File Processor",
        "description": "Reads JSON files and stores them in a table.",
        "storagePath": "/json_data",
        "filePattern": {"extensions": ["json"]},
        "recordBoundary": {"type": "json", "encoding": "utf-8"},
        "schema": {"inferFromData": True, "columns": []},
        "partitioning": {"enabled": False, "keys": []},
        "output": {
            "tableName": "json_data",
            "catalog": "iceberg_catalog",
            "namespace": "default",
            "writeMode": "append",
        },
    },
    {
        "name": "Log File Processor",
        "description": "Extracts timestamp, level and message from text log files.",
        "storagePath": "/logs",
        "filePattern": {"extensions": ["log", "txt"]},
        "recordBoundary": {
            "type": "text",
            "encoding": "utf-8",
            "fieldExtraction": {
                "method": "regex",
                "pattern": r"(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) \[(\w+)\] (.*)",
                "fieldNames": ["timestamp", "level", "message"],
            },
        },
        "schema": {
            "inferFromData": False,
            "columns": [
                {"name": "timestamp", "type": "string", "nullable": False},
                {"name": "level", "type": "string", "nullable": False},
                {"name": "message", "type": "string", "nullable": True},
            ],
        },
        "partitioning": {"enabled": False, "keys": []},
        "output": {
            "tableName": "logs",
            "catalog": "iceberg_catalog",
            "namespace": "default",
            "writeMode": "append",
        },
    },
]


class PipeDeletion(BaseModel):
    """Outcome of deleting a pipe. The row is always gone; the folder may not be."""

    pipe_id: str
    folder_deleted: bool
    folder_error: Optional[str] = None


class PipeManager:
    """Pipe catalog service."""

    def __init__(self, repository, storage: ObjectStorage):
        """
        Args:
            repository: PipeRepository (or any object with the same coroutine methods)
            storage: Object storage bridge holding the pipe folders
        """
        self.repository = repository
        self.storage = storage

    async def list_pipes(self) -> List[Pipe]:
        return await self.repository.list_all()

    async def get_pipe(self, pipe_id: str) -> Pipe:
        """
        Raises:
            NotFoundError: If no pipe has this id
        """
        pipe = await self.repository.get(pipe_id)
        if pipe is None:
            raise NotFoundError(f"Pipe '{pipe_id}' not found")
        return pipe

    async def find_by_storage_path(self, storage_path: str) -> Optional[Pipe]:
        return await self.repository.find_by_storage_path(storage_path)

    async def _check_spec(self, spec: PipeSpec, pipe_id: Optional[str] = None) -> None:
        issues = validate_pipe_spec(spec)
        if not issues:
            owner = await self.repository.find_by_storage_path(spec.storage_path)
            if owner is not None and owner.id != pipe_id:
                issues.append(
                    ValidationIssue(
                        field="storagePath",
                        message=f"storagePath is already used by pipe '{owner.name}' ({owner.id})",
                    )
                )
        if issues:
            logger.warning(
                "Pipe specification rejected",
                pipe_id=pipe_id,
                issues=[issue.model_dump() for issue in issues],
            )
            raise PipeValidationError(issues)

    async def create_pipe(self, spec: PipeSpec) -> Pipe:
        """
        Validate, provision the storage folder, then write the catalog row.

        Raises:
            PipeValidationError: Spec rejected; nothing was touched
            StorageError: Folder provisioning failed; no row was written
        """
        await self._check_spec(spec)

        await self.storage.create_folder(spec.storage_path)

        now = utc_now()
        pipe = Pipe.model_validate(
            {**spec.model_dump(), "id": str(uuid.uuid4()), "created_at": now, "updated_at": now}
        )
        await self.repository.insert(pipe)

        logger.info("Pipe created", pipe_id=pipe.id, pipe_name=pipe.name, storage_path=pipe.storage_path)
        return pipe

    async def update_pipe(self, pipe_id: str, changes: PipeUpdate) -> Pipe:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If no pipe has this id
            PipeValidationError: Merged spec rejected; nothing was touched
            StorageError: The new storage folder could not be provisioned
        """
        existing = await self.get_pipe(pipe_id)

        merged = existing.spec().model_dump()
        merged.update(changes.model_dump(exclude_unset=True))
        spec = PipeSpec.model_validate(merged)

        await self._check_spec(spec, pipe_id=pipe_id)

        if normalize_path(spec.storage_path) != normalize_path(existing.storage_path):
            await self.storage.create_folder(spec.storage_path)

        updated_at = max(utc_now(), existing.updated_at + timedelta(microseconds=1))
        pipe = Pipe.model_validate(
            {
                **spec.model_dump(),
                "id": existing.id,
                "created_at": existing.created_at,
                "updated_at": updated_at,
            }
        )
        await self.repository.update(pipe)

        logger.info("Pipe updated", pipe_id=pipe.id, changed_fields=sorted(changes.model_fields_set))
        return pipe

    async def delete_pipe(self, pipe_id: str) -> PipeDeletion:
        """
        Delete the storage folder (best effort), then the catalog row.

        Raises:
            NotFoundError: If no pipe has this id; no storage call is made
        """
        pipe = await self.get_pipe(pipe_id)

        folder_error = None
        try:
            await self.storage.delete_folder(pipe.storage_path)
        except StorageError as e:
            folder_error = e.message
            logger.warning(
                f"Failed to delete pipe folder, removing catalog row anyway: {e.message}",
                pipe_id=pipe_id,
                storage_path=pipe.storage_path,
            )

        await self.repository.delete(pipe_id)

        logger.info("Pipe deleted", pipe_id=pipe_id, folder_deleted=folder_error is None)
        return PipeDeletion(pipe_id=pipe_id, folder_deleted=folder_error is None, folder_error=folder_error)

    async def seed_default_pipes(self) -> List[Pipe]:
        """Create the built-in pipes whose names are not in the catalog yet. Never raises."""
        created: List[Pipe] = []
        try:
            existing_names = {pipe.name for pipe in await self.repository.list_all()}
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Skipping default pipes: catalog unavailable: {e}")
            return created

        for definition in DEFAULT_PIPES:
            if definition["name"] in existing_names:
                continue
            try:
                created.append(await self.create_pipe(PipeSpec.model_validate(definition)))
            except (PipeValidationError, StorageError) as e:
                logger.warning(f"Default pipe '{definition['name']}' not created: {e.message}")
        return created
