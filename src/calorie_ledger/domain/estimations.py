"""Domain models for AI nutrition estimations."""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel


class EstimationStatus(StrEnum):
    """Lifecycle state of an estimation request."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Estimation:
    """One request to estimate nutrition from a meal description."""

    id: UUID
    user_id: UUID
    prompt: str
    status: EstimationStatus
    generated_calories: int | None
    generated_protein: float | None
    generated_carbs: float | None
    generated_fats: float | None
    assumptions: str | None
    error_message: str | None
    model_used: str | None
    generation_duration_ms: int | None
    meal_id: UUID | None
    created_at: datetime


class NutritionEstimate(BaseModel):
    """Structured output returned by the estimation model."""

    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fats: float | None = None
    assumptions: str | None = None
    error: str | None = None

    def is_complete(self) -> bool:
        """Return True when every numeric field carries a value."""
        return all(
            value is not None
            for value in (self.calories, self.protein, self.carbs, self.fats)
        )

    def rounded_calories(self) -> int | None:
        """Return calories rounded half up to a whole number."""
        if self.calories is None:
            return None
        return math.floor(self.calories + 0.5)
