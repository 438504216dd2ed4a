"""Abstract repository interfaces for data access.

The repository pattern provides an abstraction over data storage, so the
application can run against a local SQLite file or a PostgreSQL server
without changing the code that asks for activities.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, Optional, Protocol, Sequence, TypeVar

from trackr.domain.models import Activity

T = TypeVar("T")


class QueryExecutor(Protocol):
    """Anything that can run a parameterized statement and return rows.

    ``params`` are substituted positionally for ``$1, $2, ...`` in ``sql``.
    """

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> list[Mapping[str, Any]]:
        ...


class Outcome(Enum):
    """How a repository operation ended."""

    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT_IGNORED = "conflict_ignored"  # Insert skipped by ON CONFLICT DO NOTHING
    NO_CHANGES = "no_changes"  # Update called without fields, nothing sent
    STORAGE_ERROR = "storage_error"


@dataclass(frozen=True)
class RepositoryResult(Generic[T]):
    """Value of an operation together with how it ended.

    ``value`` is what the plain operation returns, so ``None`` still means
    "nothing" for callers that do not care about the distinction.
    """

    value: Optional[T]
    outcome: Outcome
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.OK

    @classmethod
    def found(cls, value: T) -> "RepositoryResult[T]":
        return cls(value=value, outcome=Outcome.OK)

    @classmethod
    def missing(cls, outcome: Outcome = Outcome.NOT_FOUND) -> "RepositoryResult[T]":
        return cls(value=None, outcome=outcome)

    @classmethod
    def failed(cls, error: Exception) -> "RepositoryResult[T]":
        return cls(value=None, outcome=Outcome.STORAGE_ERROR, error=error)


class ActivityRepository(ABC):
    """Abstract interface for activity storage."""

    @abstractmethod
    async def get_all(self) -> Optional[list[Activity]]:
        """Get all activities.

        Returns:
            List of activities in storage order, or None if the query failed
        """
        ...

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[Activity]:
        """Get a single activity by ID.

        Args:
            id: Activity ID

        Returns:
            Activity (id, name, description) if found, None otherwise
        """
        ...

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[Activity]:
        """Get a single activity by exact name.

        Args:
            name: Activity name

        Returns:
            Activity if found, None otherwise
        """
        ...

    @abstractmethod
    async def attach_to_routines(self, routines: Sequence[Any]) -> Optional[list[Any]]:
        """Attach each routine's activities under ``activities``.

        Args:
            routines: Routine records, mappings or objects exposing ``id``

        Returns:
            New list in input order, or None if the query failed
        """
        ...

    @abstractmethod
    async def create(self, name: str, description: Optional[str] = None) -> Optional[Activity]:
        """Create a new activity.

        Args:
            name: Unique activity name
            description: Free text description

        Returns:
            Created activity, or None if the name already exists
        """
        ...

    @abstractmethod
    async def update(self, id: int, **fields: Any) -> Optional[Activity]:
        """Apply a partial update to an activity.

        Args:
            id: Activity ID
            **fields: Columns to change (name, description)

        Returns:
            Updated activity, or None when there was nothing to update

        Raises:
            ActivityFieldError: If a field is not an updatable column
        """
        ...


class ActivityFieldError(ValueError):
    """Raised when an update targets a column that cannot be changed."""

    def __init__(self, field: str, allowed: frozenset[str]):
        super().__init__(
            f"Cannot update activity field {field!r}; "
            f"allowed fields: {', '.join(sorted(allowed))}"
        )
        self.field = field
        self.allowed = allowed
