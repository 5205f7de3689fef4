"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from calorie_ledger.adapters.openai_estimation_client import (
    OpenAIEstimationClient,
    RetryPolicy,
)
from calorie_ledger.adapters.supabase_estimation_repository import (
    SupabaseEstimationRepository,
)
from calorie_ledger.adapters.supabase_goal_repository import SupabaseGoalRepository
from calorie_ledger.adapters.supabase_meal_repository import SupabaseMealRepository
from calorie_ledger.adapters.supabase_progress_repository import (
    SupabaseProgressRepository,
)
from calorie_ledger.config import Settings
from calorie_ledger.services.estimations import EstimationOrchestrator
from calorie_ledger.services.goals import GoalResolver
from calorie_ledger.services.meals import MealLedger
from calorie_ledger.services.progress import ProgressAggregator
from calorie_ledger.services.rate_limit import SlidingWindowRateLimiter


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    rate_limiter: SlidingWindowRateLimiter
    goal_resolver: GoalResolver
    progress_aggregator: ProgressAggregator
    estimation_orchestrator: EstimationOrchestrator
    meal_ledger: MealLedger
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    goal_resolver = GoalResolver(
        SupabaseGoalRepository(supabase_client),
        default_daily_goal=resolved_settings.default_daily_goal,
    )
    progress_aggregator = ProgressAggregator(
        SupabaseProgressRepository(supabase_client), goal_resolver
    )
    rate_limiter = SlidingWindowRateLimiter(
        limit=resolved_settings.estimation_rate_limit,
        window_ms=resolved_settings.estimation_rate_window_seconds * 1000,
    )
    estimation_client = OpenAIEstimationClient.create(
        api_key=resolved_settings.openai_api_key,
        model=resolved_settings.estimation_model,
        base_url=resolved_settings.openai_base_url,
        timeout_seconds=resolved_settings.estimation_timeout_seconds,
        retry_policy=RetryPolicy(
            max_attempts=resolved_settings.estimation_max_attempts,
            initial_delay_seconds=resolved_settings.estimation_initial_delay_seconds,
            backoff_factor=resolved_settings.estimation_backoff_factor,
            max_delay_seconds=resolved_settings.estimation_max_delay_seconds,
        ),
    )
    estimation_orchestrator = EstimationOrchestrator(
        client=estimation_client,
        repository=SupabaseEstimationRepository(supabase_client),
        rate_limiter=rate_limiter,
    )
    meal_ledger = MealLedger(
        repository=SupabaseMealRepository(supabase_client),
        estimations=estimation_orchestrator,
    )

    async def close_resources() -> None:
        await estimation_client.close()

    return AppContainer(
        settings=resolved_settings,
        rate_limiter=rate_limiter,
        goal_resolver=goal_resolver,
        progress_aggregator=progress_aggregator,
        estimation_orchestrator=estimation_orchestrator,
        meal_ledger=meal_ledger,
        close_resources=close_resources,
    )
