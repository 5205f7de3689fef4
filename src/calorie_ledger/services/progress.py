"""Daily progress aggregation against the calorie goal timeline."""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date
from typing import Protocol
from uuid import UUID

from calorie_ledger.domain.meals import Meal
from calorie_ledger.domain.payloads import ProgressQuery, parse_payload
from calorie_ledger.domain.progress import DailyProgress, DailyTotals, ProgressStatus
from calorie_ledger.errors import ValidationError
from calorie_ledger.services.goals import GoalResolver

ON_TRACK_TOLERANCE_KCAL = 100


class ProgressRepository(Protocol):
    def list_daily_totals(
        self, user_id: UUID, date_from: date | None, date_to: date | None
    ) -> list[DailyTotals]:
        """Return per-day totals for days with at least one meal."""


def progress_status(total_calories: int, calorie_goal: int) -> ProgressStatus:
    """Classify intake against the goal with a +/-100 kcal band."""
    if total_calories < calorie_goal - ON_TRACK_TOLERANCE_KCAL:
        return ProgressStatus.UNDER
    if total_calories > calorie_goal + ON_TRACK_TOLERANCE_KCAL:
        return ProgressStatus.OVER
    return ProgressStatus.ON_TRACK


def empty_totals(day: date) -> DailyTotals:
    return DailyTotals(
        day=day, calories=0, protein=0.0, carbs=0.0, fats=0.0, meal_count=0
    )


def summarize(user_id: UUID, totals: DailyTotals, calorie_goal: int) -> DailyProgress:
    """Build the progress view for one day.

    A day without meals is always "under" at 0%, whatever the goal.
    """
    if totals.meal_count == 0:
        percentage = 0.0
        status = ProgressStatus.UNDER
    else:
        percentage = round(totals.calories / calorie_goal * 100, 1)
        status = progress_status(totals.calories, calorie_goal)
    return DailyProgress(
        day=totals.day,
        user_id=user_id,
        total_calories=totals.calories,
        total_protein=round(totals.protein, 2),
        total_carbs=round(totals.carbs, 2),
        total_fats=round(totals.fats, 2),
        calorie_goal=calorie_goal,
        percentage=percentage,
        status=status,
    )


def aggregate_meals(meals: Iterable[Meal]) -> list[DailyTotals]:
    """Group meals by UTC calendar day and sum them, oldest day first."""
    buckets: dict[date, list[Meal]] = defaultdict(list)
    for meal in meals:
        buckets[meal.meal_timestamp.astimezone(UTC).date()].append(meal)
    return [
        DailyTotals(
            day=day,
            calories=sum(meal.calories for meal in day_meals),
            protein=sum(meal.protein or 0.0 for meal in day_meals),
            carbs=sum(meal.carbs or 0.0 for meal in day_meals),
            fats=sum(meal.fats or 0.0 for meal in day_meals),
            meal_count=len(day_meals),
        )
        for day, day_meals in sorted(buckets.items())
    ]


@dataclass
class ProgressAggregator:
    """Computes daily progress on demand; nothing is cached."""

    repository: ProgressRepository
    goal_resolver: GoalResolver

    def get_by_date(self, user_id: UUID, day: date) -> DailyProgress:
        """Return progress for one day, even when no meals were logged."""
        if day > self.goal_resolver.today():
            raise ValidationError({"date": "Date cannot be in the future"})
        rows = self.repository.list_daily_totals(user_id, day, day)
        totals = next((row for row in rows if row.day == day), empty_totals(day))
        return self._summarize(user_id, totals)

    def get_range(
        self,
        user_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 30,
        offset: int = 0,
    ) -> tuple[list[DailyProgress], int]:
        """Return days that have meals, newest first, plus the total count."""
        query = parse_payload(
            ProgressQuery,
            {
                "date_from": date_from,
                "date_to": date_to,
                "limit": limit,
                "offset": offset,
            },
        )
        rows = self.repository.list_daily_totals(
            user_id, query.date_from, query.date_to
        )
        rows = sorted(
            (row for row in rows if row.meal_count > 0),
            key=lambda row: row.day,
            reverse=True,
        )
        page = rows[query.offset : query.offset + query.limit]
        return [self._summarize(user_id, row) for row in page], len(rows)

    def _summarize(self, user_id: UUID, totals: DailyTotals) -> DailyProgress:
        goal = self.goal_resolver.resolve(user_id, totals.day)
        return summarize(user_id, totals, goal.daily_goal)
