"""
Pipe Repository

CRUD for catalog rows. Nested pipe structures are stored as JSONB in their
camelCase wire form so the row mirrors what API clients see.
"""

import json
from typing import Any
from typing import List
from typing import Mapping
from typing import Optional

from datachef_api.models.pipe import Pipe

_JSON_COLUMNS = {
    "file_pattern": "filePattern",
    "record_boundary": "recordBoundary",
    "schema": "schema",
    "partitioning": "partitioning",
    "output": "output",
}

_SELECT = """
    SELECT id, name, description, storage_path, file_pattern, record_boundary,
           schema, partitioning, output, created_at, updated_at
    FROM datachef.pipes
"""


def _load_json(value: Any) -> Any:
    # asyncpg returns JSONB as text unless a codec is registered
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def row_to_pipe(row: Mapping[str, Any]) -> Pipe:
    """Convert a pipes row to a Pipe model."""
    data = {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "storagePath": row["storage_path"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }
    for column, wire_name in _JSON_COLUMNS.items():
        data[wire_name] = _load_json(row[column])
    return Pipe.model_validate(data)


def pipe_to_params(pipe: Pipe) -> List[Any]:
    """Positional parameters in column order: id, scalar fields, JSON columns, timestamps."""
    wire = pipe.to_wire()
    return [
        pipe.id,
        pipe.name,
        pipe.description,
        pipe.storage_path,
        *[json.dumps(wire[wire_name]) for wire_name in _JSON_COLUMNS.values()],
        pipe.created_at,
        pipe.updated_at,
    ]


class PipeRepository:
    """Pipe catalog repository."""

    def __init__(self, pool):
        """
        Args:
            pool: CatalogDBPool or asyncpg pool (anything exposing acquire())
        """
        self.pool = pool

    async def list_all(self) -> List[Pipe]:
        """All pipes, most recently updated first."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(_SELECT + " ORDER BY updated_at DESC")
        return [row_to_pipe(row) for row in rows]

    async def get(self, pipe_id: str) -> Optional[Pipe]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(_SELECT + " WHERE id = $1", pipe_id)
        return row_to_pipe(row) if row else None

    async def find_by_storage_path(self, storage_path: str) -> Optional[Pipe]:
        """Pipe bound to a folder; separators around the path are ignored."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                _SELECT + " WHERE btrim(storage_path, '/') = btrim($1, '/')",
                storage_path,
            )
        return row_to_pipe(row) if row else None

    async def insert(self, pipe: Pipe) -> Pipe:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO datachef.pipes (
                    id, name, description, storage_path, file_pattern, record_boundary,
                    schema, partitioning, output, created_at, updated_at
                )
                VALUES ($1, $2, $3, $4, $5::jsonb, $6::jsonb, $7::jsonb, $8::jsonb, $9::jsonb, $10, $11)
                """,
                *pipe_to_params(pipe),
            )
        return pipe

    async def update(self, pipe: Pipe) -> Pipe:
        """Overwrite every mutable column; id and created_at are never changed."""
        params = pipe_to_params(pipe)
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE datachef.pipes
                SET name = $2, description = $3, storage_path = $4,
                    file_pattern = $5::jsonb, record_boundary = $6::jsonb, schema = $7::jsonb,
                    partitioning = $8::jsonb, output = $9::jsonb, updated_at = $10
                WHERE id = $1
                """,
                *params[:9],
                pipe.updated_at,
            )
        return pipe

    async def delete(self, pipe_id: str) -> bool:
        """
        Returns:
            True if a row was removed
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM datachef.pipes WHERE id = $1", pipe_id)
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return result.split()[-1] != "0"
