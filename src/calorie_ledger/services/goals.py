"""Calorie goal timeline: resolution and lifecycle rules."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol
from uuid import UUID

from calorie_ledger.domain.goals import CalorieGoal
from calorie_ledger.domain.payloads import GoalInput, PageQuery, parse_payload
from calorie_ledger.errors import (
    ConflictError,
    DuplicateRecordError,
    GoalImmutableError,
    NotFoundError,
    ValidationError,
)

DEFAULT_DAILY_GOAL = 2000

_logger = logging.getLogger(__name__)


class GoalRepository(Protocol):
    """Persistence interface for calorie goals.

    ``create_goal`` must raise DuplicateRecordError when the
    (user, effective_from) uniqueness constraint trips.
    """

    def get_latest_on_or_before(self, user_id: UUID, day: date) -> CalorieGoal | None:
        """Return the goal with the latest effective_from <= day."""

    def get_earliest_after(self, user_id: UUID, day: date) -> CalorieGoal | None:
        """Return the goal with the earliest effective_from > day."""

    def get_by_effective_from(self, user_id: UUID, day: date) -> CalorieGoal | None:
        """Return the goal starting exactly on day."""

    def get_goal(self, user_id: UUID, goal_id: UUID) -> CalorieGoal | None:
        """Return a goal by id."""

    def create_goal(
        self, user_id: UUID, daily_goal: int, effective_from: date
    ) -> CalorieGoal:
        """Insert a goal and return it."""

    def update_daily_goal(
        self, user_id: UUID, goal_id: UUID, daily_goal: int
    ) -> CalorieGoal | None:
        """Change the numeric goal and return the updated row."""

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> bool:
        """Delete a goal; return False when nothing matched."""

    def list_goals(self, user_id: UUID, limit: int, offset: int) -> list[CalorieGoal]:
        """Return goals ordered by effective_from, newest first."""

    def count_goals(self, user_id: UUID) -> int:
        """Return the number of goals the user has."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class GoalResolver:
    """Resolves the applicable goal for a date and guards goal edits.

    Goals form an append-only timeline keyed by effective_from. A goal
    whose effective_from is today or earlier may already have fed a
    progress summary, so only future goals can be edited in place.
    """

    repository: GoalRepository
    default_daily_goal: int = DEFAULT_DAILY_GOAL
    now: Callable[[], datetime] = _utc_now

    def today(self) -> date:
        """Return the current UTC date."""
        return self.now().date()

    def resolve(self, user_id: UUID, target_date: date) -> CalorieGoal:
        """Return the current, next upcoming, or default goal. Never fails."""
        current = self.repository.get_latest_on_or_before(user_id, target_date)
        if current is not None:
            return current
        upcoming = self.repository.get_earliest_after(user_id, target_date)
        if upcoming is not None:
            return upcoming
        anchor = datetime.combine(target_date, time.min, tzinfo=UTC)
        return CalorieGoal(
            id=None,
            user_id=user_id,
            daily_goal=self.default_daily_goal,
            effective_from=target_date,
            created_at=anchor,
            updated_at=anchor,
        )

    def resolve_exact(self, user_id: UUID, day: date) -> CalorieGoal | None:
        """Return the goal starting exactly on day, if any."""
        return self.repository.get_by_effective_from(user_id, day)

    def is_immutable(self, user_id: UUID, goal_id: UUID) -> bool:
        """Return True once a goal has taken effect.

        Unknown goals report True so callers never edit them.
        """
        goal = self.repository.get_goal(user_id, goal_id)
        return goal is None or self._has_taken_effect(goal)

    def create(
        self, user_id: UUID, daily_goal: int, effective_from: date | None = None
    ) -> CalorieGoal:
        """Append a goal starting tomorrow or on an explicit future date."""
        value = parse_payload(GoalInput, {"daily_goal": daily_goal}).daily_goal
        today = self.today()
        if effective_from is None:
            effective_from = today + timedelta(days=1)
        elif effective_from <= today:
            raise ValidationError(
                {"effective_from": "Effective date must be in the future"}
            )
        try:
            goal = self.repository.create_goal(user_id, value, effective_from)
        except DuplicateRecordError as exc:
            raise ConflictError(
                "A calorie goal for this date already exists. Update it instead."
            ) from exc
        _logger.info(
            "Calorie goal created: user_id=%s effective_from=%s",
            user_id,
            effective_from,
        )
        return goal

    def update(self, user_id: UUID, goal_id: UUID, daily_goal: int) -> CalorieGoal:
        """Change a future goal's value; effective_from never changes."""
        value = parse_payload(GoalInput, {"daily_goal": daily_goal}).daily_goal
        goal = self.repository.get_goal(user_id, goal_id)
        if goal is None:
            raise NotFoundError("Calorie goal not found")
        # The store accepts updates on past goals; this check is the only guard.
        if self._has_taken_effect(goal):
            raise GoalImmutableError(
                "This calorie goal is already in effect and cannot be changed. "
                "Create a new goal instead."
            )
        updated = self.repository.update_daily_goal(user_id, goal_id, value)
        if updated is None:
            raise NotFoundError("Calorie goal not found")
        return updated

    def delete(self, user_id: UUID, goal_id: UUID) -> bool:
        """Delete any goal; past summaries are recomputed, not cached."""
        return self.repository.delete_goal(user_id, goal_id)

    def list_goals(
        self, user_id: UUID, limit: int = 50, offset: int = 0
    ) -> tuple[list[CalorieGoal], int]:
        """Return a page of the goal history and the total count."""
        page = parse_payload(PageQuery, {"limit": limit, "offset": offset})
        goals = self.repository.list_goals(user_id, page.limit, page.offset)
        return goals, self.repository.count_goals(user_id)

    def _has_taken_effect(self, goal: CalorieGoal) -> bool:
        return goal.effective_from <= self.today()
