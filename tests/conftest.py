"""Pytest fixtures and configuration."""

import pytest

from trackr.data.activity_repo import SQLActivityRepository
from trackr.data.executor import SQLiteExecutor


class RecordingExecutor:
    """QueryExecutor double that records statements and replays responses.

    Each queued response is either a list of rows or an exception to raise.
    With nothing queued, ``execute`` returns no rows.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def execute(self, sql, params=()):
        self.calls.append((" ".join(sql.split()), list(params)))
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def make_executor():
    """Factory fixture for RecordingExecutor instances."""
    return RecordingExecutor


@pytest.fixture
async def sqlite_executor(tmp_path):
    """Connected SQLite executor on a temporary database."""
    executor = SQLiteExecutor(tmp_path / "test.db")
    await executor.connect()
    yield executor
    await executor.close()


@pytest.fixture
async def repo(sqlite_executor):
    """Activity repository backed by a temporary SQLite database."""
    return SQLActivityRepository(sqlite_executor)


@pytest.fixture
def seed_routine(sqlite_executor):
    """Insert a routine and link activities to it.

    ``links`` are (activity_id, duration, count) tuples.
    """

    async def _seed(name, links=()):
        rows = await sqlite_executor.execute(
            'INSERT INTO routines("creatorId", "isPublic", name, goal) '
            "VALUES ($1, $2, $3, $4) RETURNING *",
            [1, 1, name, f"{name} goal"],
        )
        routine = rows[0]
        for activity_id, duration, count in links:
            await sqlite_executor.execute(
                'INSERT INTO routine_activities("routineId", "activityId", duration, count) '
                "VALUES ($1, $2, $3, $4)",
                [routine["id"], activity_id, duration, count],
            )
        return routine

    return _seed
