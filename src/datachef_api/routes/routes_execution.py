from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from loguru import logger

from datachef_api.dependencies import get_orchestrator
from datachef_api.execution.runner import ExecutionOrchestrator
from datachef_api.models.execution import ExecutionResult
from datachef_api.models.execution import PipeExecution
from datachef_api.schemas.schemas import CancelResponse
from datachef_api.schemas.schemas import ExecuteRequest
from datachef_api.schemas.schemas import ExecutionStatusResponse

ROUTER_EXECUTION = APIRouter(tags=["Execution"])


@ROUTER_EXECUTION.post(
    "/execution",
    response_model=ExecutionResult,
    responses={
        status.HTTP_404_NOT_FOUND: {"description": "Pipe not found"},
        status.HTTP_409_CONFLICT: {
            "description": "Another execution is running",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Another pipe execution is already running",
                        "error_type": "ExecutionInProgressError",
                        "runningPipeId": "a1b2",
                    }
                }
            },
        },
    },
)
async def execute_pipe(request: ExecuteRequest, orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)):
    """
    Run a pipe on the engine and wait for it to finish.

    Engine failures are reported in the body (success=false, error, logs)
    with status 200; the request itself succeeded.
    """
    logger.info("Execution requested", pipe_id=request.pipe_id, source_path=request.source_path)
    result = await orchestrator.execute(request.pipe_id, request.source_path)
    logger.info(
        "Execution finished",
        pipe_id=request.pipe_id,
        execution_id=result.execution_id,
        execution_status=result.status.value,
    )
    return result


@ROUTER_EXECUTION.get("/execution/status", response_model=ExecutionStatusResponse)
async def execution_status(orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)):
    """Whether an execution is running, and which one."""
    return orchestrator.status()


@ROUTER_EXECUTION.delete("/execution", response_model=CancelResponse)
async def cancel_execution(orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)):
    """Terminate the running execution. cancelled=false when nothing was running."""
    cancelled = await orchestrator.cancel()
    logger.info("Cancel requested", cancelled=cancelled)
    return CancelResponse(cancelled=cancelled)


@ROUTER_EXECUTION.get("/execution/history", response_model=List[PipeExecution])
async def execution_history(
    pipe_id: Optional[str] = Query(default=None, alias="pipeId"),
    limit: int = Query(default=50, gt=0, le=500),
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
):
    """Most recent executions first, optionally for one pipe."""
    return await orchestrator.history_for(pipe_id=pipe_id, limit=limit)
