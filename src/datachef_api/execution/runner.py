"""
Execution Orchestrator

Binds a pipe and a source path into one engine "execute" invocation, tracks
it in the execution slot, records its history and exposes status/cancel.
Execution failures come back as an ExecutionResult; only requests that can
be rejected before any work starts (unknown pipe, busy slot) raise.
"""

import asyncio
import uuid
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Set

from loguru import logger

from datachef_api.enums import ExecutionStatus
from datachef_api.enums import LogLevel
from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import DataChefError
from datachef_api.exceptions import EngineError
from datachef_api.execution.slot import ExecutionSlot
from datachef_api.models.execution import ExecutionLog
from datachef_api.models.execution import ExecutionResult
from datachef_api.models.execution import PipeExecution
from datachef_api.models.execution import utc_now
from datachef_api.models.pipe import Pipe
from datachef_api.settings import Settings

# Engine log levels as loguru level names
_LOGURU_LEVELS = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARN: "WARNING",
    LogLevel.ERROR: "ERROR",
}

# Counters copied from the engine result into the execution record
_RESULT_COUNTERS = {
    "filesProcessed": "files_processed",
    "recordsProcessed": "records_processed",
    "bytesProcessed": "bytes_processed",
}

CANCELLED_MESSAGE = "Execution cancelled"


class ExecutionOrchestrator:
    """Runs pipes on the engine, one at a time."""

    def __init__(
        self,
        settings: Settings,
        pipe_manager,
        storage,
        bridge,
        slot: Optional[ExecutionSlot] = None,
        history=None,
    ):
        """
        Args:
            settings: Current settings (connection blob for the engine)
            pipe_manager: PipeManager resolving pipe ids and storage paths
            storage: ObjectStorage resolving source paths to engine locations
            bridge: EngineBridge
            slot: Execution slot (a private one is created when omitted)
            history: ExecutionRepository, or None to skip execution history
        """
        self.settings = settings
        self.pipe_manager = pipe_manager
        self.storage = storage
        self.bridge = bridge
        self.slot = slot or ExecutionSlot()
        self.history = history
        self._background_tasks: Set[asyncio.Task] = set()

    def build_config(self, pipe: Pipe, source_location: str) -> Dict[str, Any]:
        """Configuration blob handed to the engine for one execution."""
        return {
            "pipe": pipe.to_wire(),
            "sourcePath": source_location,
            **self.settings.connection_blob(),
        }

    async def _record(self, operation: str, execution: PipeExecution) -> None:
        if self.history is None or not self.settings.persist_execution_history:
            return
        try:
            await getattr(self.history, operation)(execution)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning(f"Failed to {operation} execution history: {e}", execution_id=execution.id)

    async def execute(
        self,
        pipe_id: str,
        source_path: Optional[str] = None,
        on_log: Optional[Callable[[ExecutionLog], None]] = None,
        wait: bool = False,
    ) -> ExecutionResult:
        """
        Run a pipe on the engine.

        Args:
            pipe_id: Pipe to run
            source_path: Folder or object to read; defaults to the pipe's storage path
            on_log: Receives every log entry as the engine produces it
            wait: Queue behind a running execution instead of failing

        Raises:
            NotFoundError: Unknown pipe id
            ExecutionInProgressError: Another execution holds the slot and wait is False
        """
        pipe = await self.pipe_manager.get_pipe(pipe_id)
        source = source_path or pipe.storage_path
        execution_id = str(uuid.uuid4())

        async with self.slot.acquire(pipe.id, execution_id, wait=wait) as holder:
            engine_logger = logger.bind(pipe_id=pipe.id, execution_id=execution_id)
            logs: List[ExecutionLog] = []

            def collect(entry: ExecutionLog) -> None:
                logs.append(entry)
                engine_logger.log(_LOGURU_LEVELS[entry.level], entry.message)
                if on_log is not None:
                    on_log(entry)

            execution = PipeExecution(
                id=execution_id,
                pipe_id=pipe.id,
                pipe_name=pipe.name,
                source_path=source,
                status=ExecutionStatus.RUNNING,
            )
            await self._record("insert", execution)
            collect(ExecutionLog(message=f"Starting pipe '{pipe.name}' on {source}"))

            data: Optional[Dict[str, Any]] = None
            error: Optional[str] = None
            try:
                if holder.cancel_requested:
                    raise EngineError(CANCELLED_MESSAGE)
                config = self.build_config(pipe, self.storage.s3_path(source))
                data = await self.bridge.invoke(
                    "execute",
                    config=config,
                    on_log=collect,
                    on_spawn=self.slot.attach,
                )
                status = ExecutionStatus.COMPLETED
            except (EngineError, ConfigError) as e:
                if holder.cancel_requested:
                    status = ExecutionStatus.CANCELLED
                    error = CANCELLED_MESSAGE
                else:
                    status = ExecutionStatus.FAILED
                    error = e.message
                collect(ExecutionLog(level=LogLevel.ERROR, message=error))

            if status == ExecutionStatus.COMPLETED:
                collect(ExecutionLog(message=f"Pipe '{pipe.name}' completed"))

            execution.status = status
            execution.completed_at = utc_now()
            execution.error = error
            execution.logs = logs
            for result_key, attribute in _RESULT_COUNTERS.items():
                value = (data or {}).get(result_key)
                if isinstance(value, int):
                    setattr(execution, attribute, value)
            await self._record("update", execution)

        return ExecutionResult(
            success=status == ExecutionStatus.COMPLETED,
            error=error,
            status=status,
            execution_id=execution_id,
            data=data,
            logs=logs,
        )

    def status(self) -> Dict[str, Any]:
        """{running, pipeId?, executionId?, startedAt?} of the slot holder."""
        return self.slot.status()

    async def cancel(self) -> bool:
        """Terminate the running execution; False when nothing was running."""
        return await self.slot.cancel()

    async def history_for(self, pipe_id: Optional[str] = None, limit: int = 50) -> List[PipeExecution]:
        if self.history is None:
            return []
        return await self.history.list_recent(pipe_id=pipe_id, limit=limit)

    async def trigger_for_upload(self, storage_path: str) -> Optional[Pipe]:
        """
        Start the pipe bound to an upload folder in the background.

        Returns:
            The triggered pipe, or None when no pipe owns the folder
        """
        pipe = await self.pipe_manager.find_by_storage_path(storage_path)
        if pipe is None:
            return None

        task = asyncio.create_task(self._run_triggered(pipe, storage_path))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        logger.info("Upload triggered pipe execution", pipe_id=pipe.id, storage_path=storage_path)
        return pipe

    async def _run_triggered(self, pipe: Pipe, storage_path: str) -> None:
        try:
            result = await self.execute(pipe.id, pipe.storage_path, wait=True)
        except DataChefError as e:
            logger.error(f"Triggered execution not started: {e.message}", pipe_id=pipe.id)
            return
        except Exception:
            # Nothing awaits this task; the traceback is only visible here
            logger.exception("Triggered execution crashed", pipe_id=pipe.id, storage_path=storage_path)
            return
        if result.success:
            logger.info("Triggered execution completed", pipe_id=pipe.id, execution_id=result.execution_id)
        else:
            logger.warning(
                f"Triggered execution {result.status.value}: {result.error}",
                pipe_id=pipe.id,
                execution_id=result.execution_id,
                storage_path=storage_path,
            )

    async def close(self) -> None:
        """Cancel the running execution and wait for background runs to finish."""
        await self.cancel()
        pending = list(self._background_tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
