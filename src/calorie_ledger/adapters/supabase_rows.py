"""Row parsing shared by the Supabase repositories."""

from datetime import UTC, date, datetime, time
from uuid import UUID

from postgrest.exceptions import APIError

from calorie_ledger.domain.meals import (
    InputMethod,
    Meal,
    MealCategory,
    MealEstimationInfo,
)

UNIQUE_VIOLATION = "23505"

MEAL_COLUMNS = (
    "id, user_id, description, calories, protein, carbs, fats, category, "
    "input_method, meal_timestamp, ai_generation_id, created_at, updated_at"
)

# Meal columns plus the estimation the meal was logged from.
MEAL_DETAIL_COLUMNS = (
    f"{MEAL_COLUMNS}, ai_generation:ai_generations!meals_ai_generation_id_fkey("
    "id, prompt, assumptions, model_used, generation_duration)"
)


def is_unique_violation(exc: APIError) -> bool:
    return exc.code == UNIQUE_VIOLATION


def parse_meal(row: dict[str, object]) -> Meal:
    """Parse a meals row."""
    category = row.get("category")
    return Meal(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        description=str(row["description"]),
        calories=int(row["calories"]),
        protein=optional_float(row.get("protein")),
        carbs=optional_float(row.get("carbs")),
        fats=optional_float(row.get("fats")),
        category=MealCategory(category) if category else None,
        input_method=InputMethod(row["input_method"]),
        meal_timestamp=parse_datetime(row["meal_timestamp"]),
        estimation_id=optional_uuid(row.get("ai_generation_id")),
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
        estimation=parse_meal_estimation(row.get("ai_generation")),
    )


def parse_meal_estimation(value: object) -> MealEstimationInfo | None:
    """Parse the embedded ai_generation object of a meals row."""
    if isinstance(value, list):
        value = value[0] if value else None
    if not isinstance(value, dict):
        return None
    return MealEstimationInfo(
        id=UUID(str(value["id"])),
        prompt=str(value["prompt"]),
        assumptions=value.get("assumptions"),
        model_used=value.get("model_used"),
        generation_duration_ms=optional_int(value.get("generation_duration")),
    )


def parse_datetime(value: object) -> datetime:
    return datetime.fromisoformat(str(value))


def parse_date(value: object) -> date:
    return date.fromisoformat(str(value)[:10])


def optional_uuid(value: object) -> UUID | None:
    return UUID(str(value)) if value else None


def optional_float(value: object) -> float | None:
    return float(value) if value is not None else None


def optional_int(value: object) -> int | None:
    return int(value) if value is not None else None


def to_column(value: object) -> object:
    """Convert a domain value into its JSON column representation."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def utc_day_start(day: date) -> str:
    """Return midnight UTC of the day as an ISO timestamp."""
    return datetime.combine(day, time.min, tzinfo=UTC).isoformat()
