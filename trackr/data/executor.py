"""Query executors: the shared clients repositories run statements through.

Both executors take statements written with PostgreSQL-style positional
placeholders (``$1, $2, ...``) and return rows as plain dicts.
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

import aiosqlite
import asyncpg

from trackr.data.resilience import with_retry
from trackr.domain.settings import StorageSettings

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 100.0

_PLACEHOLDER = re.compile(r"\$(\d+)")


def _log_query(sql: str, elapsed_ms: float, threshold_ms: float) -> None:
    """Log statement timing; warn above the slow-query threshold."""
    statement = " ".join(sql.split())[:200]
    if elapsed_ms > threshold_ms:
        logger.warning("SLOW QUERY (%.1fms): %s", elapsed_ms, statement)
    else:
        logger.debug("Query (%.1fms): %s", elapsed_ms, statement)


class PostgresExecutor:
    """Runs statements on an asyncpg connection pool.

    Example:
        >>> settings = StorageSettings(
        ...     backend="postgres",
        ...     db_connection_string="postgresql://...",
        ... )
        >>> executor = PostgresExecutor(settings)
        >>> await executor.connect()
        >>> rows = await executor.execute("SELECT * FROM activities WHERE id = $1", [1])
        >>> await executor.close()
    """

    def __init__(
        self,
        settings: StorageSettings,
        pool: Optional[asyncpg.Pool] = None,
    ):
        """Initialize executor.

        Args:
            settings: Storage settings with connection string and pool sizes
            pool: Optional pre-built pool; ``connect()`` is then unnecessary
        """
        self._settings = settings
        self._pool = pool
        self._is_healthy = pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool.

        Raises:
            RuntimeError: If not connected
        """
        if self._pool is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def is_healthy(self) -> bool:
        """Check if connection is healthy (last health check passed)."""
        return self._is_healthy and self._pool is not None

    async def connect(self) -> None:
        """Create connection pool with automatic retry.

        Raises:
            ValueError: If connection string not configured
            asyncpg.PostgresError: If connection fails after retries
        """
        if not self._settings.db_connection_string:
            raise ValueError("Database connection string not configured")

        async def do_connect():
            self._pool = await asyncpg.create_pool(
                self._settings.db_connection_string,
                min_size=self._settings.pool_min_size,
                max_size=self._settings.pool_max_size,
                command_timeout=self._settings.command_timeout,
                # Disable prepared statements for connection poolers
                statement_cache_size=0,
            )

        await with_retry(do_connect, max_retries=3, initial_delay=1.0, max_delay=10.0)

        self._is_healthy = True
        logger.info("Connection pool created successfully")

    async def close(self, timeout: Optional[float] = None) -> None:
        """Close connection pool gracefully.

        Args:
            timeout: Optional timeout in seconds. If close doesn't complete
                     within timeout, the pool is forcefully terminated.
        """
        if not self._pool:
            return

        pool = self._pool
        self._pool = None
        self._is_healthy = False

        try:
            if timeout:
                await asyncio.wait_for(pool.close(), timeout=timeout)
            else:
                await pool.close()
            logger.info("Connection pool closed gracefully")
        except asyncio.TimeoutError:
            logger.warning("Pool close timed out after %ss, terminating", timeout)
            pool.terminate()

    async def health_check(self) -> bool:
        """Run ``SELECT 1`` and record whether it worked."""
        if not self._pool:
            self._is_healthy = False
            return False

        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            if self._is_healthy:
                logger.warning("Connection health check failed: %s", e)
            self._is_healthy = False
            return False

        if not self._is_healthy:
            logger.info("Connection health restored")
        self._is_healthy = True
        return True

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run *sql* with positional *params* and return rows as dicts."""
        async with self.pool.acquire() as conn:
            start = time.perf_counter()
            records = await conn.fetch(sql, *params)
            _log_query(sql, (time.perf_counter() - start) * 1000, self._settings.slow_query_ms)
        return [dict(record) for record in records]

    async def ensure_schema(self) -> None:
        """Create the activity tables if they don't exist."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                CREATE TABLE IF NOT EXISTS activities (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) UNIQUE NOT NULL,
                    description TEXT
                );

                CREATE TABLE IF NOT EXISTS routines (
                    id SERIAL PRIMARY KEY,
                    "creatorId" INTEGER,
                    "isPublic" BOOLEAN DEFAULT false,
                    name VARCHAR(255) UNIQUE NOT NULL,
                    goal TEXT
                );

                CREATE TABLE IF NOT EXISTS routine_activities (
                    id SERIAL PRIMARY KEY,
                    "routineId" INTEGER REFERENCES routines(id),
                    "activityId" INTEGER REFERENCES activities(id),
                    duration INTEGER,
                    count INTEGER,
                    UNIQUE ("routineId", "activityId")
                );
                """
            )


class SQLiteExecutor:
    """Runs statements on a local SQLite file through aiosqlite.

    ``$N`` placeholders are rewritten to SQLite's ``?N`` form so the same
    statements work against both backends.
    """

    def __init__(
        self,
        db_path: Union[Path, str],
        slow_query_ms: float = SLOW_QUERY_THRESHOLD_MS,
    ):
        self._db_path = db_path
        self._slow_query_ms = slow_query_ms
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected. Call connect() first.")
        return self._conn

    async def connect(self) -> None:
        """Connect to database and ensure schema exists."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._ensure_schema()
        logger.info("Opened SQLite database %s", self._db_path)

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        await self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                description TEXT
            );

            CREATE TABLE IF NOT EXISTS routines (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                "creatorId" INTEGER,
                "isPublic" INTEGER DEFAULT 0,
                name TEXT UNIQUE NOT NULL,
                goal TEXT
            );

            CREATE TABLE IF NOT EXISTS routine_activities (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                "routineId" INTEGER REFERENCES routines(id),
                "activityId" INTEGER REFERENCES activities(id),
                duration INTEGER,
                count INTEGER,
                UNIQUE ("routineId", "activityId")
            );

            CREATE INDEX IF NOT EXISTS idx_routine_activities_routine
                ON routine_activities("routineId");
            """
        )
        await self._conn.commit()

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run *sql* with positional *params* and return rows as dicts.

        Write statements are committed once their rows have been read. A
        failed statement rolls back its implicit transaction so the file
        lock is released before the error propagates.
        """
        conn = self.connection
        start = time.perf_counter()
        try:
            async with conn.execute(_PLACEHOLDER.sub(r"?\1", sql), tuple(params)) as cursor:
                rows: list[Mapping[str, Any]] = list(await cursor.fetchall())
        except Exception:
            if conn.in_transaction:
                await conn.rollback()
            raise
        if conn.in_transaction:
            await conn.commit()
        _log_query(sql, (time.perf_counter() - start) * 1000, self._slow_query_ms)
        return [dict(row) for row in rows]
