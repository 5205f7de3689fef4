"""Supabase repository for calorie goals."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from calorie_ledger.adapters.supabase_rows import (
    is_unique_violation,
    parse_date,
    parse_datetime,
)
from calorie_ledger.domain.goals import CalorieGoal
from calorie_ledger.errors import DuplicateRecordError, UnexpectedError
from calorie_ledger.services.goals import GoalRepository

_GOAL_COLUMNS = "id, user_id, daily_goal, effective_from, created_at, updated_at"


@dataclass
class SupabaseGoalRepository(GoalRepository):
    """Supabase implementation for calorie goals."""

    client: Client

    def get_latest_on_or_before(self, user_id: UUID, day: date) -> CalorieGoal | None:
        response = (
            self.client.table("calorie_goals")
            .select(_GOAL_COLUMNS)
            .eq("user_id", str(user_id))
            .lte("effective_from", day.isoformat())
            .order("effective_from", desc=True)
            .limit(1)
            .execute()
        )
        return _first_goal(response.data)

    def get_earliest_after(self, user_id: UUID, day: date) -> CalorieGoal | None:
        response = (
            self.client.table("calorie_goals")
            .select(_GOAL_COLUMNS)
            .eq("user_id", str(user_id))
            .gt("effective_from", day.isoformat())
            .order("effective_from")
            .limit(1)
            .execute()
        )
        return _first_goal(response.data)

    def get_by_effective_from(self, user_id: UUID, day: date) -> CalorieGoal | None:
        response = (
            self.client.table("calorie_goals")
            .select(_GOAL_COLUMNS)
            .eq("user_id", str(user_id))
            .eq("effective_from", day.isoformat())
            .limit(1)
            .execute()
        )
        return _first_goal(response.data)

    def get_goal(self, user_id: UUID, goal_id: UUID) -> CalorieGoal | None:
        response = (
            self.client.table("calorie_goals")
            .select(_GOAL_COLUMNS)
            .eq("id", str(goal_id))
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        return _first_goal(response.data)

    def create_goal(
        self, user_id: UUID, daily_goal: int, effective_from: date
    ) -> CalorieGoal:
        """Insert a goal; the (user_id, effective_from) pair is unique."""
        try:
            response = (
                self.client.table("calorie_goals")
                .insert(
                    {
                        "user_id": str(user_id),
                        "daily_goal": daily_goal,
                        "effective_from": effective_from.isoformat(),
                    }
                )
                .execute()
            )
        except APIError as exc:
            if is_unique_violation(exc):
                raise DuplicateRecordError(str(exc.message)) from exc
            raise
        goal = _first_goal(response.data)
        if goal is None:
            raise UnexpectedError("Failed to create calorie goal")
        return goal

    def update_daily_goal(
        self, user_id: UUID, goal_id: UUID, daily_goal: int
    ) -> CalorieGoal | None:
        response = (
            self.client.table("calorie_goals")
            .update(
                {
                    "daily_goal": daily_goal,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(goal_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return _first_goal(response.data)

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> bool:
        response = (
            self.client.table("calorie_goals")
            .delete()
            .eq("id", str(goal_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        return bool(response.data)

    def list_goals(self, user_id: UUID, limit: int, offset: int) -> list[CalorieGoal]:
        response = (
            self.client.table("calorie_goals")
            .select(_GOAL_COLUMNS)
            .eq("user_id", str(user_id))
            .order("effective_from", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [_parse_goal(row) for row in response.data or []]

    def count_goals(self, user_id: UUID) -> int:
        response = (
            self.client.table("calorie_goals")
            .select("id", count="exact")
            .eq("user_id", str(user_id))
            .execute()
        )
        return response.count or 0


def _first_goal(rows: list[dict[str, object]] | None) -> CalorieGoal | None:
    if not rows:
        return None
    return _parse_goal(rows[0])


def _parse_goal(row: dict[str, object]) -> CalorieGoal:
    return CalorieGoal(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        daily_goal=int(row["daily_goal"]),
        effective_from=parse_date(row["effective_from"]),
        created_at=parse_datetime(row["created_at"]),
        updated_at=parse_datetime(row["updated_at"]),
    )
