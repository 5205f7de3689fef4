"""Domain models for logged meals."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class MealCategory(StrEnum):
    """Meal slot within a day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    OTHER = "other"


class InputMethod(StrEnum):
    """How a meal's nutritional values were produced."""

    MANUAL = "manual"
    AI = "ai"
    AI_EDITED = "ai-edited"


@dataclass(frozen=True)
class MealEstimationInfo:
    """Summary of the estimation a meal was logged from."""

    id: UUID
    prompt: str
    assumptions: str | None
    model_used: str | None
    generation_duration_ms: int | None


@dataclass(frozen=True)
class Meal:
    """A single logged food intake event."""

    id: UUID
    user_id: UUID
    description: str
    calories: int
    protein: float | None
    carbs: float | None
    fats: float | None
    category: MealCategory | None
    input_method: InputMethod
    meal_timestamp: datetime
    estimation_id: UUID | None
    created_at: datetime
    updated_at: datetime
    estimation: MealEstimationInfo | None = None


@dataclass(frozen=True)
class MealWarning:
    """Advisory message attached to a meal write."""

    field: str
    message: str


@dataclass(frozen=True)
class MealWriteResult:
    """Persisted meal together with any advisory warnings."""

    meal: Meal
    warnings: list[MealWarning]
