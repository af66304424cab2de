"""
Data Chef Models Module

All Pydantic models for the pipe catalog and the execution layer:
- Pipe specification models (file matching, records, fields, schema, output)
- Specification validator and reference field extractor
- Execution timeline models
"""

# Pipe Specification Models
from datachef_api.models.pipe import (
    PATH_ROOT,
    DelimiterExtraction,
    FieldExtraction,
    FieldProcessing,
    FilePattern,
    FixedExtraction,
    OutputConfig,
    PartitionKey,
    Partitioning,
    Pipe,
    PipeSpec,
    PipeUpdate,
    RecordBoundary,
    RegexExtraction,
    Replacement,
    SchemaColumn,
    SplitExtraction,
    SplitStep,
    TableSchema,
)

# Validation and Extraction
from datachef_api.models.validation import ValidationIssue, validate_field_extraction, validate_pipe_spec
from datachef_api.models.extraction import FieldExtractionError, extract_fields, extract_records

# Execution Models
from datachef_api.models.execution import ExecutionLog, ExecutionResult, PipeExecution

__all__ = [
    # Pipe specification
    "PATH_ROOT",
    "DelimiterExtraction",
    "FieldExtraction",
    "FieldProcessing",
    "FilePattern",
    "FixedExtraction",
    "OutputConfig",
    "PartitionKey",
    "Partitioning",
    "Pipe",
    "PipeSpec",
    "PipeUpdate",
    "RecordBoundary",
    "RegexExtraction",
    "Replacement",
    "SchemaColumn",
    "SplitExtraction",
    "SplitStep",
    "TableSchema",
    # Validation and extraction
    "ValidationIssue",
    "validate_field_extraction",
    "validate_pipe_spec",
    "FieldExtractionError",
    "extract_fields",
    "extract_records",
    # Execution
    "ExecutionLog",
    "ExecutionResult",
    "PipeExecution",
]
