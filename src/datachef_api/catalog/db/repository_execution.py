"""
Execution Repository

Execution history: one row per engine run, written at start and updated when
the run reaches a terminal state.
"""

import json
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional

from datachef_api.models.execution import PipeExecution

_SELECT = """
    SELECT id, pipe_id, pipe_name, source_path, status, started_at, completed_at,
           files_processed, records_processed, bytes_processed, error, logs
    FROM datachef.executions
"""


def row_to_execution(row: Mapping[str, Any]) -> PipeExecution:
    """Convert an executions row to a PipeExecution model."""
    logs = row["logs"]
    if isinstance(logs, (str, bytes)):
        logs = json.loads(logs)
    return PipeExecution(
        id=row["id"],
        pipe_id=row["pipe_id"],
        pipe_name=row["pipe_name"],
        source_path=row["source_path"],
        status=row["status"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        files_processed=row["files_processed"],
        records_processed=row["records_processed"],
        bytes_processed=row["bytes_processed"],
        error=row["error"],
        logs=logs or [],
    )


def _logs_json(execution: PipeExecution) -> str:
    return json.dumps([log.model_dump(mode="json") for log in execution.logs])


class ExecutionRepository:
    """Execution history repository."""

    def __init__(self, pool):
        self.pool = pool

    async def insert(self, execution: PipeExecution) -> PipeExecution:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO datachef.executions (
                    id, pipe_id, pipe_name, source_path, status, started_at, completed_at,
                    files_processed, records_processed, bytes_processed, error, logs
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::jsonb)
                """,
                execution.id,
                execution.pipe_id,
                execution.pipe_name,
                execution.source_path,
                execution.status.value,
                execution.started_at,
                execution.completed_at,
                execution.files_processed,
                execution.records_processed,
                execution.bytes_processed,
                execution.error,
                _logs_json(execution),
            )
        return execution

    async def update(self, execution: PipeExecution) -> PipeExecution:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE datachef.executions
                SET status = $2, completed_at = $3, files_processed = $4, records_processed = $5,
                    bytes_processed = $6, error = $7, logs = $8::jsonb
                WHERE id = $1
                """,
                execution.id,
                execution.status.value,
                execution.completed_at,
                execution.files_processed,
                execution.records_processed,
                execution.bytes_processed,
                execution.error,
                _logs_json(execution),
            )
        return execution

    async def get(self, execution_id: str) -> Optional[PipeExecution]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(_SELECT + " WHERE id = $1", execution_id)
        return row_to_execution(row) if row else None

    async def list_recent(self, pipe_id: Optional[str] = None, limit: int = 50) -> List[PipeExecution]:
        """Most recent executions first, optionally for one pipe."""
        async with self.pool.acquire() as conn:
            if pipe_id:
                rows = await conn.fetch(
                    _SELECT + " WHERE pipe_id = $1 ORDER BY started_at DESC LIMIT $2", pipe_id, limit
                )
            else:
                rows = await conn.fetch(_SELECT + " ORDER BY started_at DESC LIMIT $1", limit)
        return [row_to_execution(row) for row in rows]
