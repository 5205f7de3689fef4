"""Domain models for the calorie goal timeline."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID


@dataclass(frozen=True)
class CalorieGoal:
    """One entry in a user's historized goal timeline.

    The synthetic default goal returned when a user has no goals at all
    carries ``id=None`` and is never persisted.
    """

    id: UUID | None
    user_id: UUID
    daily_goal: int
    effective_from: date
    created_at: datetime
    updated_at: datetime

    @property
    def is_default(self) -> bool:
        """Return True for the virtual fallback goal."""
        return self.id is None
