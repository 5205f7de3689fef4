"""Domain models for daily progress summaries."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from uuid import UUID


class ProgressStatus(StrEnum):
    """Position of the day's intake relative to the goal."""

    UNDER = "under"
    ON_TRACK = "on_track"
    OVER = "over"


@dataclass(frozen=True)
class DailyTotals:
    """Summed intake for one calendar day."""

    day: date
    calories: int
    protein: float
    carbs: float
    fats: float
    meal_count: int


@dataclass(frozen=True)
class DailyProgress:
    """Derived progress view for one (user, day) pair."""

    day: date
    user_id: UUID
    total_calories: int
    total_protein: float
    total_carbs: float
    total_fats: float
    calorie_goal: int
    percentage: float
    status: ProgressStatus
