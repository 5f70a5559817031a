"""
Database connection pool and utilities for PostgreSQL.
"""

import json
import logging
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager
from pathlib import Path

import asyncpg
from asyncpg import Pool, Connection

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


async def _init_connection(conn: Connection):
    """Initialize connection with JSON codec."""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )
    await conn.set_type_codec(
        'json',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )


class Database:
    """Owns one asyncpg pool. Created once per process and passed to the store."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[Pool] = None

    async def connect(self) -> Pool:
        """Get or create the connection pool."""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
                init=_init_connection,  # Register JSON codecs on each connection
            )
            logger.info("Database connection pool created")
        return self._pool

    async def close(self):
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Connection, None]:
        """Get a connection from the pool."""
        pool = await self.connect()
        async with pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """Get a connection with an active transaction."""
        pool = await self.connect()
        async with pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args, timeout: float = None) -> str:
        """Execute a query and return status."""
        async with self.connection() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch(self, query: str, *args, timeout: float = None) -> list:
        """Fetch multiple rows."""
        async with self.connection() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetchrow(self, query: str, *args, timeout: float = None):
        """Fetch a single row."""
        async with self.connection() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetchval(self, query: str, *args, timeout: float = None):
        """Fetch a single value."""
        async with self.connection() as conn:
            return await conn.fetchval(query, *args, timeout=timeout)

    async def check_connection(self) -> bool:
        """Check if database connection is healthy."""
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    async def run_migration(self, migration_sql: str):
        """Run a migration SQL script."""
        async with self.transaction() as conn:
            await conn.execute(migration_sql)
            logger.info("Migration executed successfully")

    async def init_schema(self):
        """Create the scraping tables if they do not exist."""
        await self.run_migration(SCHEMA_PATH.read_text())


def parse_status_count(status: str) -> int:
    """Row count from an asyncpg command status such as ``DELETE 12``."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0
