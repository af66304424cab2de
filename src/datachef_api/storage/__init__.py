"""Object storage bridge (S3 / MinIO)."""

from datachef_api.storage.object_storage import ObjectStorage
from datachef_api.storage.object_storage import StorageItem
from datachef_api.storage.object_storage import normalize_path

__all__ = [
    "ObjectStorage",
    "StorageItem",
    "normalize_path",
]
