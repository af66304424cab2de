"""
Execution Models

Timeline of one engine invocation: log entries streamed while it runs, the
persisted execution record, and the result handed back to the caller.
"""

from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import Field

from datachef_api.enums import ExecutionStatus
from datachef_api.enums import LogLevel
from datachef_api.models.pipe import CamelModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionLog(CamelModel):
    """One log entry produced during an execution."""

    timestamp: datetime = Field(default_factory=utc_now)
    level: LogLevel = LogLevel.INFO
    message: str


class PipeExecution(CamelModel):
    """Persisted record of one pipe execution."""

    id: str
    pipe_id: str
    pipe_name: str
    source_path: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    files_processed: int = 0
    records_processed: int = 0
    bytes_processed: int = 0
    error: Optional[str] = None
    logs: List[ExecutionLog] = Field(default_factory=list)


class ExecutionResult(CamelModel):
    """Outcome of one execute() call. Failure is data, never an exception."""

    success: bool
    error: Optional[str] = None
    status: ExecutionStatus = ExecutionStatus.COMPLETED
    execution_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    logs: List[ExecutionLog] = Field(default_factory=list)
