"""
Pipe Specification Models

Pydantic models for the declarative pipe specification: which objects under a
storage path are inputs, how their bytes split into records, how each record
splits into fields, the target schema, partitioning and output table.

Field names are snake_case in Python and camelCase on the wire; the camelCase
form is what API clients send and what the engine receives in its config blob.
"""

import re
from datetime import datetime
from typing import Annotated
from typing import Dict
from typing import List
from typing import Literal
from typing import Optional
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator
from pydantic.alias_generators import to_camel

from datachef_api.enums import ColumnType
from datachef_api.enums import OnError
from datachef_api.enums import PartitionTransform
from datachef_api.enums import RecordType
from datachef_api.enums import WriteMode

# Path-root marker every storage path must begin with
PATH_ROOT = "/"

DEFAULT_DELIMITER = ","


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting both spellings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ════════════════════════════════════════════════════════════════════════════
# File Matching
# ════════════════════════════════════════════════════════════════════════════


class FilePattern(CamelModel):
    """Which objects under the pipe's storage path are eligible inputs."""

    extensions: List[str] = Field(default_factory=list)
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    regex: Optional[str] = None
    min_size: Optional[int] = Field(default=None, ge=0)
    max_size: Optional[int] = Field(default=None, ge=0)

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        """Store extensions lowercase and without a leading dot."""
        return [ext.strip().lstrip(".").lower() for ext in v if ext and ext.strip()]

    def matches(self, object_name: str, size: Optional[int] = None) -> bool:
        """
        Check whether an object is an eligible input.

        Prefix, suffix and regex are applied to the file name (last key
        segment); the suffix is compared against the name without extension.
        """
        name = object_name.rsplit("/", 1)[-1]
        stem, dot, ext = name.rpartition(".")
        if not dot:
            stem, ext = name, ""

        if self.extensions and ext.lower() not in self.extensions:
            return False
        if self.prefix and not name.startswith(self.prefix):
            return False
        if self.suffix and not stem.endswith(self.suffix):
            return False
        if self.regex and not re.search(self.regex, name):
            return False
        if size is not None:
            if self.min_size is not None and size < self.min_size:
                return False
            if self.max_size is not None and size > self.max_size:
                return False
        return True


# ════════════════════════════════════════════════════════════════════════════
# Field Extraction (tagged variant on "method")
# ════════════════════════════════════════════════════════════════════════════


class SplitStep(CamelModel):
    """One re-split of the current value(s) by a delimiter."""

    delimiter: str = Field(min_length=1)
    index: Optional[int] = None  # Select one part (negative counts from the end)
    keep_all: bool = False  # Keep all parts together as one array value


class Replacement(BaseModel):
    """Literal string replacement applied during field processing."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: str = ""


class FieldProcessing(CamelModel):
    """Post-processing steps for one extracted field, applied in declared order."""

    field: str
    trim: bool = False
    replace: List[Replacement] = Field(default_factory=list)
    regex: Optional[str] = None
    date_format: Optional[str] = None


class _ExtractionBase(CamelModel):
    field_names: List[str] = Field(default_factory=list)
    on_error: OnError = OnError.NULL
    field_processing: List[FieldProcessing] = Field(default_factory=list)


class RegexExtraction(_ExtractionBase):
    """Capture groups of a pattern mapped positionally to field names."""

    method: Literal["regex"] = "regex"
    pattern: str


class DelimiterExtraction(_ExtractionBase):
    """Record text split on a single delimiter, tokens mapped positionally."""

    method: Literal["delimiter"] = "delimiter"
    field_delimiter: str = Field(min_length=1)


class FixedExtraction(_ExtractionBase):
    """Record text sliced into consecutive fixed-width columns."""

    method: Literal["fixed"] = "fixed"
    fixed_widths: List[Annotated[int, Field(gt=0)]] = Field(min_length=1)


class SplitExtraction(_ExtractionBase):
    """Record text re-split step by step until one value per field remains."""

    method: Literal["split"] = "split"
    split_steps: List[SplitStep] = Field(min_length=1)


FieldExtraction = Annotated[
    Union[RegexExtraction, DelimiterExtraction, FixedExtraction, SplitExtraction],
    Field(discriminator="method"),
]


# ════════════════════════════════════════════════════════════════════════════
# Record Boundary
# ════════════════════════════════════════════════════════════════════════════


class RecordBoundary(CamelModel):
    """Rule splitting raw file bytes into records."""

    type: RecordType
    delimiter: Optional[str] = None
    quote: Optional[str] = None
    escape: Optional[str] = None
    has_header: Optional[bool] = None
    encoding: Optional[str] = None
    line_separator: Optional[str] = None
    multiline_pattern: Optional[str] = None
    field_extraction: Optional[FieldExtraction] = None

    @model_validator(mode="after")
    def apply_delimited_defaults(self) -> "RecordBoundary":
        """Delimited records default to ',' with a header row."""
        if self.type == RecordType.DELIMITED:
            if self.delimiter is None:
                self.delimiter = DEFAULT_DELIMITER
            if self.has_header is None:
                self.has_header = True
        return self


# ════════════════════════════════════════════════════════════════════════════
# Schema, Partitioning, Output
# ════════════════════════════════════════════════════════════════════════════


class SchemaColumn(CamelModel):
    """One explicitly declared output column."""

    name: str
    type: ColumnType
    nullable: bool = True
    description: Optional[str] = None
    format: Optional[str] = None


class TableSchema(CamelModel):
    """Either inferred downstream or an explicit ordered column list."""

    infer_from_data: bool = True
    columns: List[SchemaColumn] = Field(default_factory=list)


class PartitionKey(CamelModel):
    """One partition column and its transform."""

    column: str
    transform: PartitionTransform = PartitionTransform.IDENTITY
    bucket_count: Optional[int] = None
    truncate_length: Optional[int] = None


class Partitioning(CamelModel):
    """Disabled, or an ordered list of partition keys."""

    enabled: bool = False
    keys: List[PartitionKey] = Field(default_factory=list)


class OutputConfig(CamelModel):
    """Target table of the pipe."""

    table_name: str
    catalog: str = "iceberg_catalog"
    namespace: str = "default"
    write_mode: WriteMode = WriteMode.APPEND
    properties: Optional[Dict[str, str]] = None


# ════════════════════════════════════════════════════════════════════════════
# Pipe
# ════════════════════════════════════════════════════════════════════════════


class PipeSpec(CamelModel):
    """User-supplied part of a pipe (everything except id and timestamps)."""

    name: str
    description: Optional[str] = None
    storage_path: str
    file_pattern: FilePattern = Field(default_factory=FilePattern)
    record_boundary: RecordBoundary
    table_schema: TableSchema = Field(default_factory=TableSchema, alias="schema")
    partitioning: Partitioning = Field(default_factory=Partitioning)
    output: OutputConfig


class Pipe(PipeSpec):
    """A persisted pipe as stored in the catalog."""

    id: str
    created_at: datetime
    updated_at: datetime

    def spec(self) -> PipeSpec:
        """Return the user-supplied part of this pipe."""
        return PipeSpec.model_validate(self.model_dump(exclude={"id", "created_at", "updated_at"}))

    def to_wire(self) -> dict:
        """Serialize with camelCase keys and JSON-compatible values."""
        return self.model_dump(mode="json", by_alias=True)


class PipeUpdate(CamelModel):
    """Partial update of a pipe; unset fields are left untouched."""

    name: Optional[str] = None
    description: Optional[str] = None
    storage_path: Optional[str] = None
    file_pattern: Optional[FilePattern] = None
    record_boundary: Optional[RecordBoundary] = None
    table_schema: Optional[TableSchema] = Field(default=None, alias="schema")
    partitioning: Optional[Partitioning] = None
    output: Optional[OutputConfig] = None
