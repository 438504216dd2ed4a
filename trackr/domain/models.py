"""Domain models for Trackr activities and routines.

All models are immutable (frozen dataclasses) so rows handed out by a
repository can be shared between concurrent callers safely.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Optional


@dataclass(frozen=True, slots=True)
class Activity:
    """A named exercise that can be included in routines.

    ``id`` is generated by storage, so an Activity only exists once it has
    been read back from a repository.
    """

    id: int
    name: str
    description: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Plain row representation."""
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Activity":
        """Build an Activity from a storage row."""
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description"),
        )


@dataclass(frozen=True, slots=True)
class RoutineActivity:
    """An Activity as it appears inside a routine.

    Carries the activity columns plus the attributes of the
    ``routine_activities`` link row it was joined through.
    """

    id: int
    name: str
    description: Optional[str]
    duration: Optional[int]
    count: Optional[int]
    routine_activity_id: int
    routine_id: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RoutineActivity":
        """Build from a joined row using the aliased link columns."""
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description"),
            duration=row.get("duration"),
            count=row.get("count"),
            routine_activity_id=row["routineActivityId"],
            routine_id=row["routineId"],
        )


@dataclass(frozen=True, slots=True)
class Routine:
    """Minimal routine record.

    Routines are owned elsewhere; this module only reads ``id``. The other
    fields exist so callers have a typed record to pass through
    ``attach_to_routines``.
    """

    id: int
    name: str = ""
    goal: Optional[str] = None
    is_public: bool = False
    activities: tuple[RoutineActivity, ...] = field(default_factory=tuple)

    def with_activities(self, activities: list[RoutineActivity]) -> "Routine":
        """Return a copy carrying *activities*."""
        return Routine(
            id=self.id,
            name=self.name,
            goal=self.goal,
            is_public=self.is_public,
            activities=tuple(activities),
        )
