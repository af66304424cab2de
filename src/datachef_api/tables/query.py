"""
Table Query Service

Table catalog operations answered by the engine's list/preview/query actions.
Unlike pipe executions these are request/response calls, so engine failures
propagate as EngineError and become 502 responses.
"""

from typing import Any
from typing import Dict
from typing import List

from loguru import logger

from datachef_api.exceptions import EngineProtocolError
from datachef_api.models.execution import ExecutionLog
from datachef_api.settings import Settings

DEFAULT_PREVIEW_LIMIT = 10
DEFAULT_QUERY_LIMIT = 100


class TableQueryService:
    """List, preview and query tables through the engine bridge."""

    def __init__(self, settings: Settings, bridge):
        self.settings = settings
        self.bridge = bridge

    def _log_engine_entry(self, entry: ExecutionLog) -> None:
        logger.debug(f"[engine:{entry.level.value}] {entry.message}")

    async def _invoke(self, action: str, args: List[str]) -> Dict[str, Any]:
        return await self.bridge.invoke(
            action,
            args,
            self.settings.connection_blob(),
            on_log=self._log_engine_entry,
        )

    async def list_tables(self) -> List[Dict[str, Any]]:
        """Tables known to the table catalog as [{name, namespace}]."""
        result = await self._invoke("list", [])
        tables = result.get("tables", [])
        if not isinstance(tables, list):
            raise EngineProtocolError("Engine 'list' result has no table list")
        return tables

    async def preview_table(self, table_name: str, limit: int = DEFAULT_PREVIEW_LIMIT) -> Dict[str, Any]:
        """First rows of a table as {schema: [{name, type}], rows, rowCount}."""
        result = await self._invoke("preview", ["--table", table_name, "--limit", str(limit)])
        return {
            "schema": result.get("schema", []),
            "rows": result.get("rows", []),
            "rowCount": result.get("rowCount", len(result.get("rows", []))),
        }

    async def run_query(self, sql: str, limit: int = DEFAULT_QUERY_LIMIT) -> Dict[str, Any]:
        """Run a SQL query; same shape as a preview plus the query text."""
        result = await self._invoke("query", ["--sql", sql, "--limit", str(limit)])
        logger.info("Query executed", row_count=result.get("rowCount"))
        return {
            "schema": result.get("schema", []),
            "rows": result.get("rows", []),
            "rowCount": result.get("rowCount", len(result.get("rows", []))),
            "query": sql,
        }
