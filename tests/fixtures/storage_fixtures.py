"""Fixtures for object storage testing: an in-memory stand-in for the boto3 S3 client."""

import io
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

import pytest
from botocore.exceptions import ClientError

from datachef_api.storage.object_storage import ObjectStorage

TEST_BUCKET = "data-chef-test"


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakePaginator:
    """list_objects_v2 paginator returning everything in one page."""

    def __init__(self, client: "FakeS3Client"):
        self.client = client

    def paginate(self, Bucket: str, Prefix: str = "", Delimiter: Optional[str] = None):
        self.client.record("list_objects_v2", Bucket=Bucket, Prefix=Prefix, Delimiter=Delimiter)
        contents = []
        prefixes = []
        for key in sorted(self.client.objects):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix) :]
            if Delimiter and Delimiter in rest:
                common = Prefix + rest.split(Delimiter, 1)[0] + Delimiter
                if common not in prefixes:
                    prefixes.append(common)
                continue
            body, _ = self.client.objects[key]
            contents.append({"Key": key, "Size": len(body), "LastModified": self.client.last_modified})
        page: Dict[str, Any] = {}
        if contents:
            page["Contents"] = contents
        if prefixes:
            page["CommonPrefixes"] = [{"Prefix": p} for p in prefixes]
        return [page]


class FakeS3Client:
    """
    Records every call in ``calls`` and keeps objects in a dict.

    Operations listed in ``failing`` raise a ClientError with code InternalError.
    """

    def __init__(self, bucket_exists: bool = True):
        self.objects: Dict[str, tuple] = {}
        self.calls: List[tuple] = []
        self.failing: Set[str] = set()
        self.bucket_exists = bucket_exists
        self.last_modified = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

    def record(self, operation: str, **kwargs) -> None:
        self.calls.append((operation, kwargs))
        if operation in self.failing:
            raise client_error("InternalError", operation)

    def get_paginator(self, operation: str) -> FakePaginator:
        assert operation == "list_objects_v2"
        return FakePaginator(self)

    def head_bucket(self, Bucket: str):
        self.record("head_bucket", Bucket=Bucket)
        if not self.bucket_exists:
            raise client_error("404", "HeadBucket")
        return {}

    def create_bucket(self, Bucket: str):
        self.record("create_bucket", Bucket=Bucket)
        self.bucket_exists = True
        return {}

    def put_object(self, Bucket: str, Key: str, Body: bytes = b"", ContentType: Optional[str] = None):
        self.record("put_object", Bucket=Bucket, Key=Key)
        self.objects[Key] = (bytes(Body), ContentType or "binary/octet-stream")
        return {}

    def delete_object(self, Bucket: str, Key: str):
        self.record("delete_object", Bucket=Bucket, Key=Key)
        self.objects.pop(Key, None)
        return {}

    def delete_objects(self, Bucket: str, Delete: Dict[str, Any]):
        self.record("delete_objects", Bucket=Bucket, Count=len(Delete["Objects"]))
        for item in Delete["Objects"]:
            self.objects.pop(item["Key"], None)
        return {}

    def head_object(self, Bucket: str, Key: str):
        self.record("head_object", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise client_error("404", "HeadObject")
        body, content_type = self.objects[Key]
        return {"ContentLength": len(body), "ContentType": content_type, "LastModified": self.last_modified}

    def get_object(self, Bucket: str, Key: str):
        self.record("get_object", Bucket=Bucket, Key=Key)
        if Key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        body, content_type = self.objects[Key]
        return {"Body": io.BytesIO(body), "ContentType": content_type}


@pytest.fixture
def s3_client():
    """Empty in-memory S3 client with an existing bucket."""
    return FakeS3Client()


@pytest.fixture
def object_storage(s3_client):
    """ObjectStorage over the in-memory S3 client."""
    return ObjectStorage(s3_client, TEST_BUCKET)
