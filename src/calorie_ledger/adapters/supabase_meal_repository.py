"""Supabase repository for meals."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from supabase import Client

from calorie_ledger.adapters.supabase_rows import (
    MEAL_DETAIL_COLUMNS,
    parse_meal,
    to_column,
    utc_day_start,
)
from calorie_ledger.domain.meals import Meal
from calorie_ledger.domain.payloads import MealCreate, MealQuery
from calorie_ledger.errors import UnexpectedError
from calorie_ledger.services.meals import MealRepository

_COLUMN_BY_FIELD = {"estimation_id": "ai_generation_id"}


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals."""

    client: Client

    def create_meal(self, user_id: UUID, meal: MealCreate) -> Meal:
        """Insert a meal row."""
        response = (
            self.client.table("meals")
            .insert(
                {
                    "user_id": str(user_id),
                    "description": meal.description,
                    "calories": meal.calories,
                    "protein": meal.protein,
                    "carbs": meal.carbs,
                    "fats": meal.fats,
                    "category": to_column(meal.category),
                    "input_method": to_column(meal.input_method),
                    "meal_timestamp": meal.meal_timestamp.isoformat(),
                    "ai_generation_id": to_column(meal.ai_generation_id),
                }
            )
            .execute()
        )
        if not response.data:
            raise UnexpectedError("Failed to create meal")
        return parse_meal(response.data[0])

    def get_meal(self, user_id: UUID, meal_id: UUID) -> Meal | None:
        """Return a meal owned by the user."""
        response = (
            self.client.table("meals")
            .select(MEAL_DETAIL_COLUMNS)
            .eq("id", str(meal_id))
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_meal(response.data[0])

    def update_meal(
        self, user_id: UUID, meal_id: UUID, changes: Mapping[str, object]
    ) -> Meal | None:
        """Apply changes and return the updated row."""
        payload = {
            _COLUMN_BY_FIELD.get(name, name): to_column(value)
            for name, value in changes.items()
        }
        payload["updated_at"] = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table("meals")
            .update(payload)
            .eq("id", str(meal_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            return None
        return parse_meal(response.data[0])

    def delete_meal(self, user_id: UUID, meal_id: UUID) -> bool:
        response = (
            self.client.table("meals")
            .delete()
            .eq("id", str(meal_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return bool(response.data)

    def list_meals(self, user_id: UUID, query: MealQuery) -> list[Meal]:
        """Return one page of meals ordered by meal_timestamp."""
        request = self.client.table("meals").select(MEAL_DETAIL_COLUMNS)
        request = _apply_filters(request.eq("user_id", str(user_id)), query)
        response = (
            request.order("meal_timestamp", desc=query.sort == "desc")
            .range(query.offset, query.offset + query.limit - 1)
            .execute()
        )
        return [parse_meal(row) for row in response.data or []]

    def count_meals(self, user_id: UUID, query: MealQuery) -> int:
        request = self.client.table("meals").select("id", count="exact")
        response = _apply_filters(request.eq("user_id", str(user_id)), query).execute()
        return response.count or 0


def _apply_filters(request: Any, query: MealQuery) -> Any:
    """Add date and category filters; dates are UTC calendar days."""
    if query.day is not None:
        request = request.gte("meal_timestamp", utc_day_start(query.day)).lt(
            "meal_timestamp", utc_day_start(query.day + timedelta(days=1))
        )
    if query.date_from is not None:
        request = request.gte("meal_timestamp", utc_day_start(query.date_from))
    if query.date_to is not None:
        request = request.lt(
            "meal_timestamp", utc_day_start(query.date_to + timedelta(days=1))
        )
    if query.category is not None:
        request = request.eq("category", str(query.category))
    return request
