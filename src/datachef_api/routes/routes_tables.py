from fastapi import APIRouter
from fastapi import Depends
from fastapi import Path
from fastapi import Query
from fastapi import status

from datachef_api.dependencies import get_table_service
from datachef_api.schemas.schemas import ListTablesResponse
from datachef_api.schemas.schemas import QueryRequest
from datachef_api.schemas.schemas import QueryResponse
from datachef_api.schemas.schemas import TablePreviewResponse
from datachef_api.tables.query import TableQueryService

ROUTER_TABLES = APIRouter(tags=["Tables"])

_ENGINE_ERROR_RESPONSE = {
    "description": "The engine failed to answer",
    "content": {
        "application/json": {
            "example": {"detail": "Engine process exited with code 1: ...", "error_type": "EngineExecutionError"}
        }
    },
}


@ROUTER_TABLES.get(
    "/tables", response_model=ListTablesResponse, responses={status.HTTP_502_BAD_GATEWAY: _ENGINE_ERROR_RESPONSE}
)
async def list_tables(table_service: TableQueryService = Depends(get_table_service)):
    """List the tables in the table catalog."""
    return ListTablesResponse(tables=await table_service.list_tables())


@ROUTER_TABLES.post(
    "/tables/query", response_model=QueryResponse, responses={status.HTTP_502_BAD_GATEWAY: _ENGINE_ERROR_RESPONSE}
)
async def run_query(request: QueryRequest, table_service: TableQueryService = Depends(get_table_service)):
    """Run a SQL query on the table catalog."""
    return await table_service.run_query(request.sql, request.limit)


@ROUTER_TABLES.get(
    "/tables/{table_name}",
    response_model=TablePreviewResponse,
    responses={status.HTTP_502_BAD_GATEWAY: _ENGINE_ERROR_RESPONSE},
)
async def preview_table(
    table_name: str = Path(..., min_length=1, pattern=r"^[A-Za-z0-9_.]+$"),
    limit: int = Query(default=10, gt=0, le=1000),
    table_service: TableQueryService = Depends(get_table_service),
):
    """First rows of a table with its column schema."""
    return await table_service.preview_table(table_name, limit)
