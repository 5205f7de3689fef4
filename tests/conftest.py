"""Shared test fixtures."""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID, uuid4

import pytest

from calorie_ledger.config import Settings
from calorie_ledger.containers import AppContainer
from calorie_ledger.domain.estimations import (
    Estimation,
    EstimationStatus,
    NutritionEstimate,
)
from calorie_ledger.domain.goals import CalorieGoal
from calorie_ledger.domain.meals import Meal
from calorie_ledger.domain.payloads import MealCreate, MealQuery
from calorie_ledger.domain.progress import DailyTotals
from calorie_ledger.errors import DuplicateRecordError
from calorie_ledger.services.estimations import (
    EstimationClient,
    EstimationOrchestrator,
    EstimationRepository,
)
from calorie_ledger.services.goals import GoalRepository, GoalResolver
from calorie_ledger.services.meals import MealLedger, MealRepository
from calorie_ledger.services.progress import (
    ProgressAggregator,
    ProgressRepository,
    aggregate_meals,
)
from calorie_ledger.services.rate_limit import SlidingWindowRateLimiter

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=UTC)
TODAY = NOW.date()


def at(day: date, hour: int = 12) -> datetime:
    """Return a UTC timestamp on the given day."""
    return datetime.combine(day, time(hour), tzinfo=UTC)


@dataclass
class FakeClock:
    """Manually advanced monotonic clock in seconds."""

    value: float = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@dataclass
class InMemoryGoalRepository(GoalRepository):
    """In-memory goal repository enforcing (user, effective_from) uniqueness."""

    goals: dict[UUID, CalorieGoal] = field(default_factory=dict)

    def add(self, user_id: UUID, daily_goal: int, effective_from: date) -> CalorieGoal:
        return self.create_goal(user_id, daily_goal, effective_from)

    def _owned(self, user_id: UUID) -> list[CalorieGoal]:
        return sorted(
            (goal for goal in self.goals.values() if goal.user_id == user_id),
            key=lambda goal: goal.effective_from,
        )

    def get_latest_on_or_before(self, user_id: UUID, day: date) -> CalorieGoal | None:
        matches = [g for g in self._owned(user_id) if g.effective_from <= day]
        return matches[-1] if matches else None

    def get_earliest_after(self, user_id: UUID, day: date) -> CalorieGoal | None:
        matches = [g for g in self._owned(user_id) if g.effective_from > day]
        return matches[0] if matches else None

    def get_by_effective_from(self, user_id: UUID, day: date) -> CalorieGoal | None:
        matches = [g for g in self._owned(user_id) if g.effective_from == day]
        return matches[0] if matches else None

    def get_goal(self, user_id: UUID, goal_id: UUID) -> CalorieGoal | None:
        goal = self.goals.get(goal_id)
        if goal is None or goal.user_id != user_id:
            return None
        return goal

    def create_goal(
        self, user_id: UUID, daily_goal: int, effective_from: date
    ) -> CalorieGoal:
        if self.get_by_effective_from(user_id, effective_from) is not None:
            raise DuplicateRecordError("duplicate key value")
        goal = CalorieGoal(
            id=uuid4(),
            user_id=user_id,
            daily_goal=daily_goal,
            effective_from=effective_from,
            created_at=NOW,
            updated_at=NOW,
        )
        self.goals[goal.id] = goal
        return goal

    def update_daily_goal(
        self, user_id: UUID, goal_id: UUID, daily_goal: int
    ) -> CalorieGoal | None:
        goal = self.get_goal(user_id, goal_id)
        if goal is None:
            return None
        updated = replace(goal, daily_goal=daily_goal)
        self.goals[goal_id] = updated
        return updated

    def delete_goal(self, user_id: UUID, goal_id: UUID) -> bool:
        if self.get_goal(user_id, goal_id) is None:
            return False
        del self.goals[goal_id]
        return True

    def list_goals(self, user_id: UUID, limit: int, offset: int) -> list[CalorieGoal]:
        return list(reversed(self._owned(user_id)))[offset : offset + limit]

    def count_goals(self, user_id: UUID) -> int:
        return len(self._owned(user_id))


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal repository."""

    meals: dict[UUID, Meal] = field(default_factory=dict)

    def create_meal(self, user_id: UUID, meal: MealCreate) -> Meal:
        record = Meal(
            id=uuid4(),
            user_id=user_id,
            description=meal.description,
            calories=meal.calories,
            protein=meal.protein,
            carbs=meal.carbs,
            fats=meal.fats,
            category=meal.category,
            input_method=meal.input_method,
            meal_timestamp=meal.meal_timestamp,
            estimation_id=meal.ai_generation_id,
            created_at=NOW,
            updated_at=NOW,
        )
        self.meals[record.id] = record
        return record

    def get_meal(self, user_id: UUID, meal_id: UUID) -> Meal | None:
        meal = self.meals.get(meal_id)
        if meal is None or meal.user_id != user_id:
            return None
        return meal

    def update_meal(
        self, user_id: UUID, meal_id: UUID, changes: Mapping[str, object]
    ) -> Meal | None:
        meal = self.get_meal(user_id, meal_id)
        if meal is None:
            return None
        updated = replace(meal, **changes)
        self.meals[meal_id] = updated
        return updated

    def delete_meal(self, user_id: UUID, meal_id: UUID) -> bool:
        if self.get_meal(user_id, meal_id) is None:
            return False
        del self.meals[meal_id]
        return True

    def _matching(self, user_id: UUID, query: MealQuery) -> list[Meal]:
        meals = []
        for meal in self.meals.values():
            day = meal.meal_timestamp.astimezone(UTC).date()
            if meal.user_id != user_id:
                continue
            if query.day is not None and day != query.day:
                continue
            if query.date_from is not None and day < query.date_from:
                continue
            if query.date_to is not None and day > query.date_to:
                continue
            if query.category is not None and meal.category != query.category:
                continue
            meals.append(meal)
        return sorted(
            meals,
            key=lambda meal: meal.meal_timestamp,
            reverse=query.sort == "desc",
        )

    def list_meals(self, user_id: UUID, query: MealQuery) -> list[Meal]:
        matching = self._matching(user_id, query)
        return matching[query.offset : query.offset + query.limit]

    def count_meals(self, user_id: UUID, query: MealQuery) -> int:
        return len(self._matching(user_id, query))


@dataclass
class InMemoryProgressRepository(ProgressRepository):
    """Derives daily totals from the in-memory meal repository."""

    meal_repository: InMemoryMealRepository

    def list_daily_totals(
        self, user_id: UUID, date_from: date | None, date_to: date | None
    ) -> list[DailyTotals]:
        meals = [
            meal
            for meal in self.meal_repository.meals.values()
            if meal.user_id == user_id
        ]
        totals = aggregate_meals(meals)
        return [
            row
            for row in totals
            if (date_from is None or row.day >= date_from)
            and (date_to is None or row.day <= date_to)
        ]


@dataclass
class InMemoryEstimationRepository(EstimationRepository):
    """In-memory estimation repository."""

    estimations: dict[UUID, Estimation] = field(default_factory=dict)
    created_order: list[UUID] = field(default_factory=list)

    def create_pending(self, user_id: UUID, prompt: str) -> Estimation:
        estimation = Estimation(
            id=uuid4(),
            user_id=user_id,
            prompt=prompt,
            status=EstimationStatus.PENDING,
            generated_calories=None,
            generated_protein=None,
            generated_carbs=None,
            generated_fats=None,
            assumptions=None,
            error_message=None,
            model_used=None,
            generation_duration_ms=None,
            meal_id=None,
            created_at=NOW + timedelta(seconds=len(self.created_order)),
        )
        self.estimations[estimation.id] = estimation
        self.created_order.append(estimation.id)
        return estimation

    def mark_completed(
        self,
        estimation: Estimation,
        estimate: NutritionEstimate,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        updated = replace(
            self.estimations[estimation.id],
            status=EstimationStatus.COMPLETED,
            generated_calories=estimate.rounded_calories(),
            generated_protein=estimate.protein,
            generated_carbs=estimate.carbs,
            generated_fats=estimate.fats,
            assumptions=estimate.assumptions,
            model_used=model_used,
            generation_duration_ms=duration_ms,
        )
        self.estimations[estimation.id] = updated
        return updated

    def mark_failed(
        self,
        estimation: Estimation,
        error_message: str,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        updated = replace(
            self.estimations[estimation.id],
            status=EstimationStatus.FAILED,
            error_message=error_message,
            model_used=model_used,
            generation_duration_ms=duration_ms,
        )
        self.estimations[estimation.id] = updated
        return updated

    def get_estimation(self, user_id: UUID, estimation_id: UUID) -> Estimation | None:
        estimation = self.estimations.get(estimation_id)
        if estimation is None or estimation.user_id != user_id:
            return None
        return estimation

    def _owned(self, user_id: UUID) -> list[Estimation]:
        return sorted(
            (e for e in self.estimations.values() if e.user_id == user_id),
            key=lambda estimation: estimation.created_at,
            reverse=True,
        )

    def list_estimations(
        self, user_id: UUID, limit: int, offset: int
    ) -> list[Estimation]:
        return self._owned(user_id)[offset : offset + limit]

    def count_estimations(self, user_id: UUID) -> int:
        return len(self._owned(user_id))

    def link_meal(self, user_id: UUID, estimation_id: UUID, meal_id: UUID) -> None:
        estimation = self.get_estimation(user_id, estimation_id)
        if estimation is not None:
            self.estimations[estimation_id] = replace(estimation, meal_id=meal_id)

    def clear_meal_link(self, user_id: UUID, meal_id: UUID) -> None:
        for estimation in self._owned(user_id):
            if estimation.meal_id == meal_id:
                self.estimations[estimation.id] = replace(estimation, meal_id=None)


@dataclass
class FakeEstimationClient(EstimationClient):
    """Returns queued estimates or raises queued errors."""

    model: str = "test/model"
    results: list[NutritionEstimate | Exception] = field(default_factory=list)
    prompts: list[str] = field(default_factory=list)

    async def estimate(self, prompt: str) -> NutritionEstimate:
        self.prompts.append(prompt)
        result = (
            self.results.pop(0)
            if self.results
            else NutritionEstimate(
                calories=520.4,
                protein=30.0,
                carbs=55.0,
                fats=18.0,
                assumptions="1 plate",
            )
        )
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        openai_api_key="openai-key",
    )


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def goal_repository() -> InMemoryGoalRepository:
    return InMemoryGoalRepository()


@pytest.fixture
def goal_resolver(goal_repository: InMemoryGoalRepository) -> GoalResolver:
    return GoalResolver(goal_repository, now=lambda: NOW)


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def progress_aggregator(
    meal_repository: InMemoryMealRepository, goal_resolver: GoalResolver
) -> ProgressAggregator:
    return ProgressAggregator(
        InMemoryProgressRepository(meal_repository), goal_resolver
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(limit=10, window_ms=60_000, clock=clock)


@pytest.fixture
def estimation_client() -> FakeEstimationClient:
    return FakeEstimationClient()


@pytest.fixture
def estimation_repository() -> InMemoryEstimationRepository:
    return InMemoryEstimationRepository()


@pytest.fixture
def orchestrator(
    estimation_client: FakeEstimationClient,
    estimation_repository: InMemoryEstimationRepository,
    rate_limiter: SlidingWindowRateLimiter,
) -> EstimationOrchestrator:
    return EstimationOrchestrator(
        client=estimation_client,
        repository=estimation_repository,
        rate_limiter=rate_limiter,
    )


@pytest.fixture
def meal_ledger(
    meal_repository: InMemoryMealRepository, orchestrator: EstimationOrchestrator
) -> MealLedger:
    return MealLedger(repository=meal_repository, estimations=orchestrator)


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    rate_limiter: SlidingWindowRateLimiter,
    goal_resolver: GoalResolver,
    progress_aggregator: ProgressAggregator,
    orchestrator: EstimationOrchestrator,
    meal_ledger: MealLedger,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        rate_limiter=rate_limiter,
        goal_resolver=goal_resolver,
        progress_aggregator=progress_aggregator,
        estimation_orchestrator=orchestrator,
        meal_ledger=meal_ledger,
        close_resources=close_resources,
    )
