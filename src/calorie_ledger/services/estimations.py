"""AI nutrition estimation lifecycle."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from calorie_ledger.domain.estimations import (
    Estimation,
    EstimationStatus,
    NutritionEstimate,
)
from calorie_ledger.domain.payloads import EstimationRequest, PageQuery, parse_payload
from calorie_ledger.errors import (
    BadStateError,
    EstimationClientError,
    NotFoundError,
    RateLimitedError,
)
from calorie_ledger.services.rate_limit import SlidingWindowRateLimiter

UNAVAILABLE_MESSAGE = "AI service temporarily unavailable. Please try again later."
INCOMPLETE_MESSAGE = "AI service returned an incomplete estimate. Please try again."

SYSTEM_PROMPT = (
    "You are a nutrition expert. Estimate the nutritional content of the meal "
    "the user describes. Respond only with a JSON object containing: calories "
    "(kcal), protein (g), carbs (g), fats (g), and assumptions (a short note "
    "on portion sizes and ingredients you assumed). If the description is not "
    "food or is too vague to estimate, set every numeric field to null and "
    "explain why in error."
)

ESTIMATE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "calories": {"anyOf": [{"type": "number", "minimum": 0}, {"type": "null"}]},
        "protein": {"anyOf": [{"type": "number", "minimum": 0}, {"type": "null"}]},
        "carbs": {"anyOf": [{"type": "number", "minimum": 0}, {"type": "null"}]},
        "fats": {"anyOf": [{"type": "number", "minimum": 0}, {"type": "null"}]},
        "assumptions": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "error": {"anyOf": [{"type": "string"}, {"type": "null"}]},
    },
    "required": ["calories", "protein", "carbs", "fats", "assumptions", "error"],
    "additionalProperties": False,
}

_logger = logging.getLogger(__name__)


class EstimationClient(Protocol):
    """Interface for the external estimation model."""

    model: str

    async def estimate(self, prompt: str) -> NutritionEstimate:
        """Return an estimate, or one carrying ``error`` for non-food input.

        Raises EstimationClientError once retries are exhausted.
        """


class EstimationRepository(Protocol):
    """Persistence interface for estimation records."""

    def create_pending(self, user_id: UUID, prompt: str) -> Estimation:
        """Insert a pending record."""

    def mark_completed(
        self,
        estimation: Estimation,
        estimate: NutritionEstimate,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        """Store the estimate and move the record to completed."""

    def mark_failed(
        self,
        estimation: Estimation,
        error_message: str,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        """Store the failure and move the record to failed."""

    def get_estimation(self, user_id: UUID, estimation_id: UUID) -> Estimation | None:
        """Return an estimation by id."""

    def list_estimations(
        self, user_id: UUID, limit: int, offset: int
    ) -> list[Estimation]:
        """Return estimations newest first."""

    def count_estimations(self, user_id: UUID) -> int:
        """Return the number of estimations the user has."""

    def link_meal(self, user_id: UUID, estimation_id: UUID, meal_id: UUID) -> None:
        """Record the meal created from an estimation."""

    def clear_meal_link(self, user_id: UUID, meal_id: UUID) -> None:
        """Detach any estimation pointing at a deleted meal."""


@dataclass
class EstimationOrchestrator:
    """Runs estimation requests from pending to a terminal state.

    Every request that passes validation and the rate limit leaves exactly
    one record behind, completed or failed. Upstream failures never reach
    the caller as exceptions.
    """

    client: EstimationClient
    repository: EstimationRepository
    rate_limiter: SlidingWindowRateLimiter
    timer: Callable[[], float] = time.monotonic

    async def create(self, user_id: UUID, prompt: str) -> Estimation:
        request = parse_payload(EstimationRequest, {"prompt": prompt})
        limit = self.rate_limiter.acquire(str(user_id))
        if not limit.allowed:
            raise RateLimitedError(retry_after_ms=limit.retry_after_ms or 0)

        pending = self.repository.create_pending(user_id, request.prompt)
        started = self.timer()
        try:
            estimate = await self.client.estimate(request.prompt)
        except EstimationClientError as exc:
            _logger.warning(
                "Estimation %s failed upstream: %s", pending.id, type(exc).__name__
            )
            return self._fail(pending, UNAVAILABLE_MESSAGE, started)
        except Exception:
            _logger.exception("Estimation %s failed unexpectedly", pending.id)
            return self._fail(pending, UNAVAILABLE_MESSAGE, started)

        if estimate.error:
            _logger.info("Estimation %s rejected by model", pending.id)
            return self._fail(pending, estimate.error, started)
        if not estimate.is_complete():
            _logger.warning("Estimation %s returned incomplete values", pending.id)
            return self._fail(pending, INCOMPLETE_MESSAGE, started)

        duration_ms = self._elapsed_ms(started)
        completed = self.repository.mark_completed(
            pending, estimate, self.client.model, duration_ms
        )
        _logger.info("Estimation %s completed in %sms", pending.id, duration_ms)
        return completed

    def get(self, user_id: UUID, estimation_id: UUID) -> Estimation:
        estimation = self.repository.get_estimation(user_id, estimation_id)
        if estimation is None:
            raise NotFoundError("AI generation not found")
        return estimation

    def list_estimations(
        self, user_id: UUID, limit: int = 20, offset: int = 0
    ) -> tuple[list[Estimation], int]:
        page = parse_payload(PageQuery, {"limit": limit, "offset": offset})
        estimations = self.repository.list_estimations(user_id, page.limit, page.offset)
        return estimations, self.repository.count_estimations(user_id)

    def require_completed(self, user_id: UUID, estimation_id: UUID) -> Estimation:
        """Return an estimation that can back a new meal."""
        estimation = self.get(user_id, estimation_id)
        if estimation.status is not EstimationStatus.COMPLETED:
            raise BadStateError("AI generation must be completed to create a meal")
        if estimation.meal_id is not None:
            raise BadStateError("AI generation is already linked to a meal")
        return estimation

    def link_meal(self, user_id: UUID, estimation_id: UUID, meal_id: UUID) -> None:
        self.repository.link_meal(user_id, estimation_id, meal_id)

    def clear_meal_link(self, user_id: UUID, meal_id: UUID) -> None:
        self.repository.clear_meal_link(user_id, meal_id)

    def _fail(self, pending: Estimation, message: str, started: float) -> Estimation:
        return self.repository.mark_failed(
            pending, message, self.client.model, self._elapsed_ms(started)
        )

    def _elapsed_ms(self, started: float) -> int:
        return int((self.timer() - started) * 1000)
