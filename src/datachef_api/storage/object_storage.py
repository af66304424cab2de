"""
Object Storage Bridge

Presents the flat key namespace of one S3/MinIO bucket as a folder hierarchy.
Every boto3 call is blocking, so each one runs in a worker thread via
asyncio.to_thread to keep the event loop free.
"""

import asyncio
from datetime import datetime
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import List
from typing import Optional

import boto3
from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError
from loguru import logger
from pydantic import BaseModel

from datachef_api.enums import StorageItemType
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import NotFoundError
from datachef_api.exceptions import StorageError
from datachef_api.settings import Settings

SEPARATOR = "/"
PLACEHOLDER_NAME = ".keep"
DELETE_BATCH_SIZE = 1000  # S3 DeleteObjects limit
DOWNLOAD_CHUNK_SIZE = 64 * 1024
_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


def normalize_path(path: Optional[str]) -> str:
    """Strip leading/trailing separators; the namespace root is the empty key."""
    return (path or "").strip().strip(SEPARATOR)


class StorageItem(BaseModel):
    """One entry of a folder listing."""

    name: str
    path: str
    type: StorageItemType
    size: Optional[int] = None
    last_modified: Optional[datetime] = None


class ObjectStorage:
    """CRUD over one bucket, addressed by folder-style paths."""

    def __init__(self, client: BaseClient, bucket: str):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "ObjectStorage":
        """
        Build a storage bridge from the storage section of the settings.

        Raises:
            ConfigError: If the endpoint, credentials or bucket are missing or unusable
        """
        if not settings.storage_endpoint or not settings.storage_bucket:
            raise ConfigError("Storage endpoint and bucket must be configured")
        if not settings.storage_access_key or not settings.storage_secret_key:
            raise ConfigError("Storage credentials must be configured")

        scheme = "https" if settings.storage_use_ssl else "http"
        endpoint_url = f"{scheme}://{settings.storage_endpoint}:{settings.storage_port}"
        try:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.storage_access_key,
                aws_secret_access_key=settings.storage_secret_key,
                region_name=settings.storage_region,
                use_ssl=settings.storage_use_ssl,
                config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
            )
        except (BotoCoreError, ValueError) as e:
            raise ConfigError(f"Invalid storage configuration: {e}") from e

        logger.info("Object storage client created", endpoint=endpoint_url, bucket=settings.storage_bucket)
        return cls(client, settings.storage_bucket)

    async def _call(self, operation: str, **kwargs) -> Dict[str, Any]:
        method = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Storage operation {operation} failed: {e}", bucket=self.bucket, operation=operation)
            raise StorageError(f"Storage operation {operation} failed: {e}") from e

    def s3_path(self, path: str) -> str:
        """Location of a path as the engine addresses it."""
        key = normalize_path(path)
        return f"s3a://{self.bucket}/{key}" if key else f"s3a://{self.bucket}"

    async def ensure_bucket(self) -> bool:
        """
        Create the bucket if it does not exist.

        Returns:
            True if the bucket was created, False if it already existed
        """
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
            return False
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") not in _MISSING_CODES | {"NoSuchBucket"}:
                raise StorageError(f"Cannot access bucket {self.bucket}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Cannot reach storage for bucket {self.bucket}: {e}") from e
        await self._call("create_bucket", Bucket=self.bucket)
        logger.info("Bucket created", bucket=self.bucket)
        return True

    async def list_path(self, path: str = "") -> List[StorageItem]:
        """
        List the immediate children of a path.

        The root lists only first-level folders. Any other path lists the
        objects directly under it, folder placeholders included, plus its
        immediate sub-folders.
        """
        key = normalize_path(path)
        prefix = f"{key}{SEPARATOR}" if key else ""

        items: List[StorageItem] = []
        paginator = self.client.get_paginator("list_objects_v2")

        def _collect() -> List[Dict[str, Any]]:
            return list(paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter=SEPARATOR))

        try:
            pages = await asyncio.to_thread(_collect)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list '{path}': {e}") from e

        for page in pages:
            for common in page.get("CommonPrefixes", []):
                folder_key = common["Prefix"].rstrip(SEPARATOR)
                items.append(
                    StorageItem(
                        name=folder_key.rsplit(SEPARATOR, 1)[-1],
                        path=SEPARATOR + folder_key,
                        type=StorageItemType.FOLDER,
                    )
                )
            if not key:
                continue
            for obj in page.get("Contents", []):
                name = obj["Key"][len(prefix) :]
                if not name:
                    continue
                items.append(
                    StorageItem(
                        name=name,
                        path=SEPARATOR + obj["Key"],
                        type=StorageItemType.FILE,
                        size=obj.get("Size"),
                        last_modified=obj.get("LastModified"),
                    )
                )
        return items

    async def list_objects(self, path: str) -> List[Dict[str, Any]]:
        """Every object under a path, recursively, as {key, size}."""
        key = normalize_path(path)
        prefix = f"{key}{SEPARATOR}" if key else ""
        paginator = self.client.get_paginator("list_objects_v2")

        def _collect() -> List[Dict[str, Any]]:
            objects = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    objects.append({"key": obj["Key"], "size": obj.get("Size")})
            return objects

        try:
            return await asyncio.to_thread(_collect)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to list objects under '{path}': {e}") from e

    async def create_folder(self, path: str) -> str:
        """Make an empty folder listable by writing a zero-length placeholder."""
        key = normalize_path(path)
        if not key:
            raise StorageError("Cannot create the root folder")
        placeholder = f"{key}{SEPARATOR}{PLACEHOLDER_NAME}"
        await self._call("put_object", Bucket=self.bucket, Key=placeholder, Body=b"")
        logger.info("Folder created", path=key)
        return key

    async def upload_file(
        self, path: str, filename: str, data: bytes, content_type: Optional[str] = None
    ) -> str:
        """Store one file under a folder and return its object key."""
        folder = normalize_path(path)
        name = normalize_path(filename).rsplit(SEPARATOR, 1)[-1]
        if not name:
            raise StorageError("File name cannot be empty")
        object_key = f"{folder}{SEPARATOR}{name}" if folder else name
        await self._call(
            "put_object",
            Bucket=self.bucket,
            Key=object_key,
            Body=data,
            ContentType=content_type or "application/octet-stream",
        )
        logger.info("File uploaded", key=object_key, size=len(data))
        return object_key

    async def delete_file(self, path: str) -> None:
        key = normalize_path(path)
        await self._call("delete_object", Bucket=self.bucket, Key=key)
        logger.info("File deleted", key=key)

    async def delete_folder(self, path: str) -> int:
        """
        Delete every object sharing the folder's prefix, nested sub-folders included.

        Returns:
            Number of objects deleted
        """
        key = normalize_path(path)
        if not key:
            raise StorageError("Refusing to delete the root folder")

        objects = await self.list_objects(key)
        keys = [obj["key"] for obj in objects]
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start : start + DELETE_BATCH_SIZE]
            response = await self._call(
                "delete_objects",
                Bucket=self.bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            errors = response.get("Errors") or []
            if errors:
                raise StorageError(f"Failed to delete {len(errors)} object(s) under '{key}'", detail=errors)

        logger.info("Folder deleted", path=key, objects_deleted=len(keys))
        return len(keys)

    async def delete(self, path: str, item_type: StorageItemType) -> int:
        """Delete a file or a whole folder."""
        if item_type == StorageItemType.FOLDER:
            return await self.delete_folder(path)
        await self.delete_file(path)
        return 1

    async def get_file_stat(self, path: str) -> Optional[Dict[str, Any]]:
        """Object metadata, or None when the object does not exist."""
        key = normalize_path(path)
        try:
            head = await asyncio.to_thread(self.client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise StorageError(f"Failed to stat '{key}': {e}") from e
        return {
            "key": key,
            "size": head.get("ContentLength"),
            "content_type": head.get("ContentType") or "application/octet-stream",
            "last_modified": head.get("LastModified"),
        }

    async def get_file_stream(self, path: str) -> AsyncIterator[bytes]:
        """
        Stream an object's bytes in chunks.

        Raises:
            NotFoundError: If the object does not exist
        """
        key = normalize_path(path)
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                raise NotFoundError(f"Object '{key}' not found") from e
            raise StorageError(f"Failed to read '{key}': {e}") from e

        body = response["Body"]
        try:
            while True:
                chunk = await asyncio.to_thread(body.read, DOWNLOAD_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk
        finally:
            body.close()
