"""SQL implementation of ActivityRepository.

Runs against any QueryExecutor (asyncpg pool or aiosqlite file). Storage
failures are caught at each operation, logged, and turned into an empty
result; the ``*_result`` variants keep the failure for callers that need it.
"""

import logging
from typing import Any, Mapping, MutableMapping, Optional, Sequence

from trackr.data.repository import (
    ActivityFieldError,
    ActivityRepository,
    Outcome,
    QueryExecutor,
    RepositoryResult,
)
from trackr.data.resilience import classify_error
from trackr.domain.models import Activity, Routine, RoutineActivity

logger = logging.getLogger(__name__)

# Columns an update may target; id is never one of them
UPDATABLE_COLUMNS = frozenset({"name", "description"})


def _routine_id(routine: Any) -> Any:
    if isinstance(routine, Mapping):
        return routine["id"]
    return routine.id


def _with_activities(routine: Any, activities: list[RoutineActivity]) -> Any:
    """Return *routine* carrying *activities*.

    Mutable mappings and plain objects are updated in place. Frozen
    Routine records and read-only mappings are copied.
    """
    if isinstance(routine, Routine):
        return routine.with_activities(activities)
    if isinstance(routine, MutableMapping):
        routine["activities"] = activities
        return routine
    if isinstance(routine, Mapping):
        return {**routine, "activities": activities}
    routine.activities = activities
    return routine


class SQLActivityRepository(ActivityRepository):
    """ActivityRepository backed by a QueryExecutor."""

    def __init__(self, executor: QueryExecutor):
        """Initialize with the executor every statement goes through.

        Args:
            executor: Shared query executor (PostgresExecutor, SQLiteExecutor
                      or anything with a compatible ``execute``)
        """
        self._executor = executor

    def _report(self, operation: str, error: Exception) -> RepositoryResult:
        category = classify_error(error)
        logger.error("DATABASE ERROR in %s (%s): %s", operation, category.value, error)
        return RepositoryResult.failed(error)

    # -- reads ----------------------------------------------------------

    async def get_all_result(self) -> RepositoryResult[list[Activity]]:
        try:
            rows = await self._executor.execute("SELECT * FROM activities;")
        except Exception as e:
            return self._report("get_all", e)
        return RepositoryResult.found([Activity.from_row(row) for row in rows])

    async def get_by_id_result(self, id: int) -> RepositoryResult[Activity]:
        try:
            rows = await self._executor.execute(
                "SELECT id, name, description FROM activities WHERE id = $1;", [id]
            )
        except Exception as e:
            return self._report("get_by_id", e)
        if not rows:
            return RepositoryResult.missing()
        return RepositoryResult.found(Activity.from_row(rows[0]))

    async def get_by_name_result(self, name: str) -> RepositoryResult[Activity]:
        try:
            rows = await self._executor.execute(
                "SELECT * FROM activities WHERE name = $1;", [name]
            )
        except Exception as e:
            return self._report("get_by_name", e)
        if not rows:
            return RepositoryResult.missing()
        return RepositoryResult.found(Activity.from_row(rows[0]))

    async def attach_to_routines_result(
        self, routines: Sequence[Any]
    ) -> RepositoryResult[list[Any]]:
        """Fetch the activities of all *routines* in one query and group them.

        An empty input returns an empty list without touching storage.
        The returned list is new; the routines in it are the caller's own
        entries, updated in place, except frozen Routine records, which
        are copied.

        Raises:
            KeyError: If a mapping routine has no ``id``
            AttributeError: If an object routine has no ``id``
        """
        routines_to_return = list(routines)
        if not routines_to_return:
            return RepositoryResult.found([])

        routine_ids = [_routine_id(routine) for routine in routines_to_return]
        binds = ", ".join(f"${index}" for index in range(1, len(routine_ids) + 1))

        try:
            rows = await self._executor.execute(
                f"""
                SELECT activities.*, routine_activities.duration, routine_activities.count,
                       routine_activities.id AS "routineActivityId", routine_activities."routineId"
                FROM activities
                JOIN routine_activities ON routine_activities."activityId" = activities.id
                WHERE routine_activities."routineId" IN ({binds});
                """,
                routine_ids,
            )
        except Exception as e:
            return self._report("attach_to_routines", e)

        activities = [RoutineActivity.from_row(row) for row in rows]
        return RepositoryResult.found([
            _with_activities(
                routine,
                [a for a in activities if a.routine_id == routine_id],
            )
            for routine, routine_id in zip(routines_to_return, routine_ids)
        ])

    # -- writes ---------------------------------------------------------

    async def create_result(
        self, name: str, description: Optional[str] = None
    ) -> RepositoryResult[Activity]:
        """Insert an activity; an existing name leaves storage untouched."""
        try:
            rows = await self._executor.execute(
                """
                INSERT INTO activities(name, description)
                VALUES ($1, $2)
                ON CONFLICT (name) DO NOTHING
                RETURNING *;
                """,
                [name, description],
            )
        except Exception as e:
            return self._report("create", e)
        if not rows:
            logger.info("Activity %r already exists, insert ignored", name)
            return RepositoryResult.missing(Outcome.CONFLICT_IGNORED)
        return RepositoryResult.found(Activity.from_row(rows[0]))

    async def update_result(
        self, id: int, fields: Mapping[str, Any]
    ) -> RepositoryResult[Activity]:
        """Update exactly the supplied *fields* of activity *id*.

        Raises:
            ActivityFieldError: If a field is not in UPDATABLE_COLUMNS
        """
        for key in fields:
            if key not in UPDATABLE_COLUMNS:
                raise ActivityFieldError(key, UPDATABLE_COLUMNS)

        if not fields:
            return RepositoryResult.missing(Outcome.NO_CHANGES)

        set_string = ", ".join(
            f'"{key}"=${index}' for index, key in enumerate(fields, start=1)
        )
        params = [*fields.values(), id]

        try:
            rows = await self._executor.execute(
                f"UPDATE activities SET {set_string} WHERE id=${len(params)} RETURNING *;",
                params,
            )
        except Exception as e:
            return self._report("update", e)
        if not rows:
            return RepositoryResult.missing()
        return RepositoryResult.found(Activity.from_row(rows[0]))

    # -- plain API --------------------------------------------------------

    async def get_all(self) -> Optional[list[Activity]]:
        return (await self.get_all_result()).value

    async def get_by_id(self, id: int) -> Optional[Activity]:
        return (await self.get_by_id_result(id)).value

    async def get_by_name(self, name: str) -> Optional[Activity]:
        return (await self.get_by_name_result(name)).value

    async def attach_to_routines(self, routines: Sequence[Any]) -> Optional[list[Any]]:
        return (await self.attach_to_routines_result(routines)).value

    async def create(self, name: str, description: Optional[str] = None) -> Optional[Activity]:
        return (await self.create_result(name, description)).value

    async def update(self, id: int, **fields: Any) -> Optional[Activity]:
        return (await self.update_result(id, fields)).value
