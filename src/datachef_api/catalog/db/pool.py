"""
Catalog Database Connection Pool

Manages the asyncpg connection pool for the pipe catalog and creates the
datachef schema from schema.sql on first start.

Schema Evolution:
-----------------
When adding/removing/renaming tables in schema.sql:
1. Update the schema.sql file with new DDL
2. Update CatalogDBPool.EXPECTED_TABLES with the new table names
3. For existing deployments drop and recreate the schema:
   DROP SCHEMA datachef CASCADE;
   (then restart the app to auto-create)
"""

import asyncio
from pathlib import Path
from typing import Optional

import asyncpg
from loguru import logger

SCHEMA_NAME = "datachef"


class CatalogDBPool:
    """Pipe catalog database connection pool manager."""

    # Update this set when schema.sql evolves
    EXPECTED_TABLES = {"pipes", "executions"}

    def __init__(self, connection_string: str):
        """
        Initialize the catalog DB pool.

        Args:
            connection_string: PostgreSQL connection string
        """
        self.connection_string = connection_string
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """Create the pool, validate it and run migrations."""
        if self._pool_initialized and self.pool is not None:
            logger.debug("Catalog DB pool already initialized")
            return

        try:
            logger.info("Initializing catalog database pool")

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=1,
                max_size=10,
                command_timeout=60,
                timeout=15,
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Catalog DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Catalog database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize catalog DB pool: {e}", exc_info=True)
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _existing_tables(self, conn) -> set:
        rows = await conn.fetch(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = $1
            """,
            SCHEMA_NAME,
        )
        return {row["table_name"] for row in rows}

    async def _run_migrations(self) -> None:
        """Execute schema.sql when any expected table is missing."""
        async with self.pool.acquire() as conn:
            existing_tables = await self._existing_tables(conn)
            if self.EXPECTED_TABLES <= existing_tables:
                logger.info(f"Catalog schema up to date ({len(existing_tables)} tables)")
                return

            missing = self.EXPECTED_TABLES - existing_tables
            logger.info("Catalog tables missing - running schema.sql", missing_tables=sorted(missing))

            schema_path = Path(__file__).parent / "schema.sql"
            if not schema_path.exists():
                raise FileNotFoundError(f"schema.sql not found at {schema_path}")

            await conn.execute(schema_path.read_text())

            existing_tables = await self._existing_tables(conn)
            missing = self.EXPECTED_TABLES - existing_tables
            if missing:
                raise RuntimeError(f"Migration incomplete: missing tables {sorted(missing)}")

            logger.success(f"All {len(self.EXPECTED_TABLES)} catalog tables verified successfully")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing catalog database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM ...")
        """
        if not self.pool:
            raise RuntimeError("Catalog DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    async def health_check(self) -> bool:
        """
        Check if the database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Catalog DB health check failed: {e}")
            return False
