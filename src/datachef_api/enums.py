"""
Data Chef Enums

All enum types used by the pipe specification model and the execution layer.
Values are the exact strings exchanged with the API clients and the engine.
"""

from enum import Enum

# ════════════════════════════════════════════════════════════════════════════
# Record and Field Enums
# ════════════════════════════════════════════════════════════════════════════


class RecordType(str, Enum):
    """How raw file bytes are split into records."""

    DELIMITED = "delimited"
    FIXED = "fixed"
    JSON = "json"
    JSONL = "jsonl"
    MULTILINE = "multiline"
    PARQUET = "parquet"
    TEXT = "text"


class OnError(str, Enum):
    """Policy when extraction under- or over-produces fields."""

    SKIP = "skip"  # Drop the record
    NULL = "null"  # Fill missing fields with null
    FAIL = "fail"  # Abort with an extraction error


# ════════════════════════════════════════════════════════════════════════════
# Schema, Partitioning and Output Enums
# ════════════════════════════════════════════════════════════════════════════


class ColumnType(str, Enum):
    """Column types accepted in an explicit schema."""

    STRING = "string"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    BINARY = "binary"
    DECIMAL = "decimal"


class PartitionTransform(str, Enum):
    """Partition transforms applied to a column value."""

    IDENTITY = "identity"
    BUCKET = "bucket"  # Requires bucket_count
    TRUNCATE = "truncate"  # Requires truncate_length
    YEAR = "year"
    MONTH = "month"
    DAY = "day"
    HOUR = "hour"


class WriteMode(str, Enum):
    """How the engine writes into the target table."""

    APPEND = "append"
    OVERWRITE = "overwrite"
    UPSERT = "upsert"


# ════════════════════════════════════════════════════════════════════════════
# Execution Enums
# ════════════════════════════════════════════════════════════════════════════


class ExecutionStatus(str, Enum):
    """Lifecycle state of one engine invocation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LogLevel(str, Enum):
    """Levels of execution log entries."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class StorageItemType(str, Enum):
    """Kinds of entries returned by a storage listing."""

    FILE = "file"
    FOLDER = "folder"
