"""Domain exceptions raised by the Data Chef services."""

from typing import Any
from typing import List
from typing import Optional


class DataChefError(Exception):
    """Base class for every error the API maps to an HTTP response."""

    def __init__(self, message: str, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class PipeValidationError(DataChefError):
    """A pipe specification violates one or more acceptance rules."""

    def __init__(self, issues: List[Any], message: str = "Pipe specification is invalid"):
        super().__init__(message, detail=issues)
        self.issues = issues


class NotFoundError(DataChefError):
    """Requested pipe, execution, table or object does not exist."""


class StorageError(DataChefError):
    """Object storage request failed."""


class ConfigError(DataChefError):
    """A required setting is missing or invalid."""


class ExecutionInProgressError(DataChefError):
    """Another pipe execution already holds the execution slot."""

    def __init__(self, running_pipe_id: Optional[str] = None):
        super().__init__("Another pipe execution is already running", detail={"runningPipeId": running_pipe_id})
        self.running_pipe_id = running_pipe_id


class EngineError(DataChefError):
    """Base class for compute engine failures."""


class EngineSpawnError(EngineError):
    """The engine process could not be started."""


class EngineProtocolError(EngineError):
    """The engine output broke the protocol: no parseable result line, or a line over the stream limit."""


class EngineExecutionError(EngineError):
    """The engine process exited with a nonzero code."""

    def __init__(self, exit_code: int, stderr: str):
        super().__init__(
            f"Engine process exited with code {exit_code}: {stderr.strip()[-2000:]}",
            detail={"exitCode": exit_code},
        )
        self.exit_code = exit_code
        self.stderr = stderr
