"""
Workspace Database Connection Pool

Manages the asyncpg connection pool for the workspace database.
Applies schema.sql on initialization.

Schema Evolution:
-----------------
schema.sql is idempotent (CREATE ... IF NOT EXISTS) and is applied on every
startup. When adding/removing/renaming tables:
1. Update schema.sql with the new DDL
2. Update WorkspaceDBPool.EXPECTED_TABLES
3. For renamed or dropped tables on existing deployments, migrate manually
"""

from pathlib import Path
from typing import Optional

import asyncpg
from loguru import logger

SCHEMA_NAME = "projectflow"


class WorkspaceDBPool:
    """Workspace database connection pool manager."""

    EXPECTED_TABLES = {
        "owners",
        "employees",
        "teams",
        "projects",
        "tasks",
        "activities",
        "id_sequences",
        "notifications",
    }

    def __init__(self, connection_string: str):
        """
        Initialize the pool manager.

        Args:
            connection_string: PostgreSQL connection string for the workspace database
        """
        self.connection_string = connection_string
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """
        Create the connection pool, validate it, and apply the schema.
        """
        if self._pool_initialized and self.pool is not None:
            logger.debug("Workspace DB pool already initialized")
            return

        try:
            logger.info("Initializing workspace database pool")

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=2,
                max_size=10,
                command_timeout=60,
                timeout=15,
                max_cached_statement_lifetime=0,  # Disable prepared statement caching (safer for DDL)
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Workspace DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Workspace database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize workspace DB pool: {e}", exc_info=True)
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """
        Apply schema.sql and verify that every expected table exists.
        """
        schema_path = Path(__file__).parent / "schema.sql"
        if not schema_path.exists():
            raise FileNotFoundError(f"schema.sql not found at {schema_path}")

        async with self.pool.acquire() as conn:
            await conn.execute(schema_path.read_text())

            rows = await conn.fetch(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = $1
                ORDER BY table_name
                """,
                SCHEMA_NAME,
            )
            existing_tables = {row["table_name"] for row in rows}

        missing_tables = self.EXPECTED_TABLES - existing_tables
        if missing_tables:
            logger.error(
                f"Schema {SCHEMA_NAME} is missing {len(missing_tables)} table(s): {missing_tables}",
                existing=sorted(existing_tables),
            )
            raise RuntimeError(f"Migration incomplete: missing tables {missing_tables}")

        extra_tables = existing_tables - self.EXPECTED_TABLES
        if extra_tables:
            logger.warning(f"Schema {SCHEMA_NAME} contains unexpected table(s): {extra_tables}")

        logger.success(f"All {len(self.EXPECTED_TABLES)} workspace tables verified")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing workspace database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False
            logger.info("Workspace DB pool closed")

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                result = await conn.fetchrow("SELECT * FROM ...")
        """
        if not self.pool:
            raise RuntimeError("Workspace DB pool not initialized - call initialize() first")
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
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Workspace DB health check failed: {e}")
            return False
