"""Factory for creating repository instances."""

import logging
from typing import Tuple, Union

from trackr.data.activity_repo import SQLActivityRepository
from trackr.data.executor import PostgresExecutor, SQLiteExecutor
from trackr.domain.settings import StorageSettings

logger = logging.getLogger(__name__)


async def create_activity_repository(
    settings: StorageSettings,
    ensure_schema: bool = False,
) -> Tuple[SQLActivityRepository, Union[SQLiteExecutor, PostgresExecutor]]:
    """Factory function to create a connected activity repository.

    Args:
        settings: Storage settings selecting the backend
        ensure_schema: Create the PostgreSQL tables if missing (the SQLite
                       backend always does)

    Returns:
        Tuple of (SQLActivityRepository, executor). The caller owns the
        executor and must ``close()`` it.

    Raises:
        ValueError: If backend is unknown or required settings are missing

    Example:
        >>> repo, executor = await create_activity_repository(
        ...     StorageSettings(sqlite_path=Path("trackr.db"))
        ... )
        >>> activities = await repo.get_all()
        >>> await executor.close()
    """
    if settings.backend == "sqlite":
        executor = SQLiteExecutor(settings.sqlite_path, slow_query_ms=settings.slow_query_ms)
        await executor.connect()
        return SQLActivityRepository(executor), executor

    elif settings.backend == "postgres":
        if not settings.db_connection_string:
            raise ValueError("db_connection_string required for postgres backend")

        executor = PostgresExecutor(settings)
        await executor.connect()
        if ensure_schema:
            await executor.ensure_schema()
            logger.info("Activity schema ensured")
        return SQLActivityRepository(executor), executor

    else:
        raise ValueError(f"Unknown backend: {settings.backend}")
