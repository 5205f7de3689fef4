"""Validated input payloads for ledger writes and queries."""

from collections.abc import Mapping
from datetime import UTC, date, datetime, timedelta
from typing import Annotated, Literal, TypeVar
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    Field,
    StringConstraints,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from calorie_ledger.domain.meals import InputMethod, MealCategory
from calorie_ledger.errors import ValidationError

CLOCK_SKEW = timedelta(minutes=1)
_VALUE_ERROR_PREFIX = "Value error, "


def _check_meal_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    if value > datetime.now(tz=UTC) + CLOCK_SKEW:
        raise ValueError("Meal timestamp cannot be in the future")
    return value


Description = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)
]
Prompt = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=1000)
]
Calories = Annotated[int, Field(ge=1, le=10000, strict=True)]
Macro = Annotated[float, Field(ge=0, le=1000, strict=True)]
MealTimestamp = Annotated[datetime, AfterValidator(_check_meal_timestamp)]

ModelT = TypeVar("ModelT", bound=BaseModel)


class MealCreate(BaseModel):
    """Payload for logging a new meal."""

    description: Description
    calories: Calories
    protein: Macro | None = None
    carbs: Macro | None = None
    fats: Macro | None = None
    category: MealCategory | None = None
    input_method: InputMethod = InputMethod.MANUAL
    ai_generation_id: UUID | None = None
    meal_timestamp: MealTimestamp

    @field_validator("input_method")
    @classmethod
    def _creatable_method(cls, value: InputMethod) -> InputMethod:
        if value is InputMethod.AI_EDITED:
            raise ValueError("New meals must be either 'manual' or 'ai'")
        return value


class MealUpdate(BaseModel):
    """Partial update for an existing meal; only provided fields change."""

    description: Description | None = None
    calories: Calories | None = None
    protein: Macro | None = None
    carbs: Macro | None = None
    fats: Macro | None = None
    category: MealCategory | None = None
    meal_timestamp: MealTimestamp | None = None
    input_method: InputMethod | None = None

    @model_validator(mode="after")
    def _check_fields(self) -> "MealUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for name in ("description", "calories", "meal_timestamp", "input_method"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict[str, object]:
        """Return only the fields the caller supplied."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class MealQuery(BaseModel):
    """Filters and pagination for meal listings."""

    day: date | None = None
    date_from: date | None = None
    date_to: date | None = None
    category: MealCategory | None = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    sort: Literal["asc", "desc"] = "desc"

    @model_validator(mode="after")
    def _check_range(self) -> "MealQuery":
        _ensure_ordered(self.date_from, self.date_to)
        return self


class ProgressQuery(BaseModel):
    """Date range and pagination for progress listings."""

    date_from: date | None = None
    date_to: date | None = None
    limit: int = Field(default=30, ge=1, le=100)
    offset: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "ProgressQuery":
        _ensure_ordered(self.date_from, self.date_to)
        return self


class PageQuery(BaseModel):
    """Plain limit/offset pagination."""

    limit: int = Field(ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class GoalInput(BaseModel):
    """Daily calorie goal value."""

    daily_goal: Calories


class EstimationRequest(BaseModel):
    """Free-text meal description to estimate."""

    prompt: Prompt


def parse_payload(model: type[ModelT], data: Mapping[str, object]) -> ModelT:
    """Validate raw input, converting failures into a ledger ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(_field_errors(exc)) from exc


def _field_errors(exc: PydanticValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        message = str(error["msg"]).removeprefix(_VALUE_ERROR_PREFIX)
        errors.setdefault(field, message)
    return errors


def _ensure_ordered(date_from: date | None, date_to: date | None) -> None:
    if date_from and date_to and date_from > date_to:
        raise ValueError("date_from must be less than or equal to date_to")
