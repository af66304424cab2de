####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator

from datachef_api.enums import StorageItemType
from datachef_api.models.pipe import CamelModel
from datachef_api.models.pipe import FieldExtraction
from datachef_api.models.pipe import Pipe
from datachef_api.storage.object_storage import StorageItem


# pipes
class DeletePipeResponse(CamelModel):
    """Response model for deleting a pipe."""

    message: str
    pipe_id: str
    folder_deleted: bool
    folder_error: Optional[str] = None


class ImportPipesResponse(CamelModel):
    """Response model for importing pipes from a YAML/JSON file."""

    message: str
    pipes: List[Pipe]


class PreviewExtractionRequest(CamelModel):
    """Sample lines to run through a field extraction rule."""

    field_extraction: FieldExtraction
    lines: List[str] = Field(min_length=1, max_length=1000)


class ExtractionLineError(CamelModel):
    line: int
    message: str


class PreviewExtractionResponse(CamelModel):
    """Records extracted from the sample lines."""

    records: List[Dict[str, Any]]
    skipped: int
    errors: List[ExtractionLineError]


class PipeFile(CamelModel):
    """An object under a pipe's storage path and whether the pipe would read it."""

    key: str
    size: Optional[int] = None
    eligible: bool


class PipeFilesResponse(CamelModel):
    pipe_id: str
    storage_path: str
    files: List[PipeFile]


# execution
class ExecuteRequest(CamelModel):
    """Request model for running a pipe."""

    pipe_id: str = Field(min_length=1)
    source_path: Optional[str] = None


class ExecutionStatusResponse(CamelModel):
    running: bool
    pipe_id: Optional[str] = None
    execution_id: Optional[str] = None
    started_at: Optional[datetime] = None


class CancelResponse(CamelModel):
    cancelled: bool


# storage
class ListStorageResponse(CamelModel):
    path: str
    items: List[StorageItem]


class CreateFolderRequest(CamelModel):
    path: str = Field(min_length=1)

    @field_validator("path")
    @classmethod
    def validate_not_root(cls, v: str) -> str:
        """The root folder always exists and cannot be created."""
        if not v.strip().strip("/"):
            raise ValueError("path must name a folder below the root")
        return v


class CreateFolderResponse(CamelModel):
    success: bool = True
    path: str


class UploadResponse(CamelModel):
    success: bool = True
    files: List[str]
    pipe_executed: bool
    pipe_id: Optional[str] = None


class DeleteStorageRequest(CamelModel):
    path: str = Field(min_length=1)
    type: StorageItemType = StorageItemType.FILE


class DeleteStorageResponse(CamelModel):
    success: bool = True
    objects_deleted: int


# tables
class TableInfo(CamelModel):
    model_config = ConfigDict(extra="allow")

    name: str
    namespace: Optional[str] = None


class ListTablesResponse(CamelModel):
    tables: List[TableInfo]


class ColumnInfo(CamelModel):
    name: str
    type: str


class TablePreviewResponse(CamelModel):
    """Response model for previewing a table; rows are keyed by column name."""

    schema_: List[ColumnInfo] = Field(alias="schema")
    rows: List[Dict[str, Any]]
    row_count: int


class QueryRequest(CamelModel):
    sql: str = Field(min_length=1)
    limit: int = Field(default=100, gt=0, le=10000)


class QueryResponse(TablePreviewResponse):
    query: str


# config
class ConfigUpdateRequest(CamelModel):
    """Partial update of the runtime-updatable settings."""

    model_config = ConfigDict(extra="forbid")

    storage_endpoint: Optional[str] = None
    storage_port: Optional[int] = Field(default=None, gt=0, lt=65536)
    storage_use_ssl: Optional[bool] = None
    storage_access_key: Optional[str] = None
    storage_secret_key: Optional[str] = None
    storage_bucket: Optional[str] = None
    storage_region: Optional[str] = None
    engine_java_home: Optional[str] = None
    engine_jar_path: Optional[str] = None
    engine_jvm_options: Optional[List[str]] = None
    engine_workdir: Optional[str] = None
    engine_command: Optional[List[str]] = None
    spark_master_url: Optional[str] = None
    spark_driver_memory: Optional[str] = None
    spark_executor_memory: Optional[str] = None
    spark_home: Optional[str] = None
    python_path: Optional[str] = None
    iceberg_warehouse: Optional[str] = None
    iceberg_catalog: Optional[str] = None
