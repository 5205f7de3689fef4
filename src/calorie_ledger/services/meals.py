"""Meal logging rules: creation, edits, and estimation links."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from calorie_ledger.domain.meals import InputMethod, Meal, MealWarning, MealWriteResult
from calorie_ledger.domain.payloads import (
    MealCreate,
    MealQuery,
    MealUpdate,
    parse_payload,
)
from calorie_ledger.errors import NotFoundError, ValidationError
from calorie_ledger.services.estimations import EstimationOrchestrator
from calorie_ledger.services.macros import consistency_warning, should_reclassify

_logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Persistence interface for meals."""

    def create_meal(self, user_id: UUID, meal: MealCreate) -> Meal:
        """Insert a meal and return it."""

    def get_meal(self, user_id: UUID, meal_id: UUID) -> Meal | None:
        """Return a meal by id."""

    def update_meal(
        self, user_id: UUID, meal_id: UUID, changes: Mapping[str, object]
    ) -> Meal | None:
        """Apply changes and return the updated meal."""

    def delete_meal(self, user_id: UUID, meal_id: UUID) -> bool:
        """Delete a meal; return False when nothing matched."""

    def list_meals(self, user_id: UUID, query: MealQuery) -> list[Meal]:
        """Return one page of meals matching the query."""

    def count_meals(self, user_id: UUID, query: MealQuery) -> int:
        """Return the number of meals matching the query filters."""


@dataclass
class MealLedger:
    """Entry point for meal writes and reads."""

    repository: MealRepository
    estimations: EstimationOrchestrator

    def create_meal(
        self, user_id: UUID, payload: Mapping[str, object]
    ) -> MealWriteResult:
        """Log a meal, linking it to its estimation when AI-sourced."""
        meal_input = parse_payload(MealCreate, payload)
        if meal_input.input_method is InputMethod.AI:
            if meal_input.ai_generation_id is None:
                raise ValidationError(
                    {
                        "ai_generation_id": (
                            "AI generation ID is required for AI-generated meals"
                        )
                    }
                )
            self.estimations.require_completed(user_id, meal_input.ai_generation_id)
        elif meal_input.ai_generation_id is not None:
            meal_input = meal_input.model_copy(update={"ai_generation_id": None})

        warnings = _warnings(
            meal_input.calories, meal_input.protein, meal_input.carbs, meal_input.fats
        )
        meal = self.repository.create_meal(user_id, meal_input)
        if meal.estimation_id is not None:
            try:
                self.estimations.link_meal(user_id, meal.estimation_id, meal.id)
            except Exception:
                _logger.warning(
                    "Estimation link failed, removing meal: meal_id=%s", meal.id
                )
                self.repository.delete_meal(user_id, meal.id)
                raise
        _logger.info(
            "Meal created: meal_id=%s input_method=%s", meal.id, meal.input_method
        )
        return MealWriteResult(meal=meal, warnings=warnings)

    def update_meal(
        self, user_id: UUID, meal_id: UUID, patch: Mapping[str, object]
    ) -> MealWriteResult:
        """Apply a partial update; AI meals become ai-edited when values change."""
        update = parse_payload(MealUpdate, patch)
        current = self.repository.get_meal(user_id, meal_id)
        if current is None:
            raise NotFoundError("Meal not found")

        changes = update.changes()
        if (
            changes.get("input_method") is InputMethod.AI
            and current.input_method is not InputMethod.AI
        ):
            raise ValidationError(
                {"input_method": "Only AI-generated meals can use input method 'ai'"}
            )
        if should_reclassify(current, changes):
            changes["input_method"] = InputMethod.AI_EDITED

        merged = replace(current, **changes)
        warnings = _warnings(merged.calories, merged.protein, merged.carbs, merged.fats)
        updated = self.repository.update_meal(user_id, meal_id, changes)
        if updated is None:
            raise NotFoundError("Meal not found")
        return MealWriteResult(meal=updated, warnings=warnings)

    def delete_meal(self, user_id: UUID, meal_id: UUID) -> bool:
        deleted = self.repository.delete_meal(user_id, meal_id)
        if deleted:
            self.estimations.clear_meal_link(user_id, meal_id)
        return deleted

    def get_meal(self, user_id: UUID, meal_id: UUID) -> Meal:
        meal = self.repository.get_meal(user_id, meal_id)
        if meal is None:
            raise NotFoundError("Meal not found")
        return meal

    def list_meals(
        self, user_id: UUID, query: Mapping[str, object]
    ) -> tuple[list[Meal], int]:
        """Return a page of meals and the total number matching the filters."""
        parsed = parse_payload(MealQuery, query)
        meals = self.repository.list_meals(user_id, parsed)
        return meals, self.repository.count_meals(user_id, parsed)


def _warnings(
    calories: int, protein: float | None, carbs: float | None, fats: float | None
) -> list[MealWarning]:
    warning = consistency_warning(calories, protein, carbs, fats)
    return [warning] if warning else []
