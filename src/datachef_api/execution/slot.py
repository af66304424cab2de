"""
Execution Slot

At most one engine process runs per service instance. The slot is an
asyncio.Lock plus a record of who holds it, so status() and cancel() always
observe the process that is actually running.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from dataclasses import field
from datetime import datetime
from typing import Any
from typing import AsyncIterator
from typing import Dict
from typing import Optional

from loguru import logger

from datachef_api.exceptions import ExecutionInProgressError
from datachef_api.models.execution import utc_now

CANCEL_GRACE_SECONDS = 10.0


@dataclass
class SlotHolder:
    """The execution currently occupying the slot."""

    pipe_id: str
    execution_id: str
    started_at: datetime = field(default_factory=utc_now)
    process: Optional[asyncio.subprocess.Process] = None
    cancel_requested: bool = False
    released: asyncio.Event = field(default_factory=asyncio.Event)


def _terminate(process: asyncio.subprocess.Process, kill: bool = False) -> None:
    try:
        if kill:
            process.kill()
        else:
            process.terminate()
    except ProcessLookupError:
        pass  # already exited


class ExecutionSlot:
    """Single-occupancy execution slot."""

    def __init__(self, cancel_grace_seconds: float = CANCEL_GRACE_SECONDS):
        self._lock = asyncio.Lock()
        self._queued = 0  # acquirers waiting on the lock
        self.holder: Optional[SlotHolder] = None
        self.cancel_grace_seconds = cancel_grace_seconds

    @property
    def busy(self) -> bool:
        """Held, or promised to a queued acquirer that has not woken up yet."""
        return self._lock.locked() or self._queued > 0

    @asynccontextmanager
    async def acquire(self, pipe_id: str, execution_id: str, wait: bool = False) -> AsyncIterator[SlotHolder]:
        """
        Occupy the slot for the duration of the block.

        Args:
            wait: Queue behind the running execution instead of failing

        Raises:
            ExecutionInProgressError: If the slot is busy and wait is False
        """
        if not wait and self.busy:
            running = self.holder.pipe_id if self.holder else None
            raise ExecutionInProgressError(running_pipe_id=running)

        self._queued += 1
        try:
            await self._lock.acquire()
        finally:
            self._queued -= 1
        holder = SlotHolder(pipe_id=pipe_id, execution_id=execution_id)
        self.holder = holder
        try:
            yield holder
        finally:
            self.holder = None
            holder.released.set()
            self._lock.release()

    def attach(self, process: asyncio.subprocess.Process) -> None:
        """Register the spawned process; honours a cancel that arrived before the spawn."""
        holder = self.holder
        if holder is None:
            return
        holder.process = process
        if holder.cancel_requested:
            logger.info("Terminating engine process cancelled before spawn", pipe_id=holder.pipe_id)
            _terminate(process)

    def status(self) -> Dict[str, Any]:
        holder = self.holder
        if holder is None:
            return {"running": False}
        return {
            "running": True,
            "pipeId": holder.pipe_id,
            "executionId": holder.execution_id,
            "startedAt": holder.started_at.isoformat(),
        }

    async def cancel(self) -> bool:
        """
        Terminate the running execution and wait until the slot is free.

        Returns:
            True if an execution was cancelled, False if nothing was running
        """
        holder = self.holder
        if holder is None or holder.cancel_requested:
            return False

        holder.cancel_requested = True
        logger.info("Cancelling execution", pipe_id=holder.pipe_id, execution_id=holder.execution_id)
        if holder.process is not None:
            _terminate(holder.process)

        try:
            await asyncio.wait_for(holder.released.wait(), timeout=self.cancel_grace_seconds)
        except asyncio.TimeoutError:
            if holder.process is not None:
                logger.warning("Engine ignored SIGTERM, killing", execution_id=holder.execution_id)
                _terminate(holder.process, kill=True)
            await holder.released.wait()
        return True
