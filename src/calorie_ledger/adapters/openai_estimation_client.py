"""OpenAI-compatible chat completions client for nutrition estimates."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import ValidationError as PydanticValidationError

from calorie_ledger.domain.estimations import NutritionEstimate
from calorie_ledger.errors import (
    EstimationClientError,
    TransientUpstreamError,
    UpstreamClientError,
    UpstreamParseError,
    UpstreamRateLimitedError,
    UpstreamServerError,
    UpstreamTimeoutError,
    UpstreamUnauthorizedError,
)
from calorie_ledger.services.estimations import (
    ESTIMATE_SCHEMA,
    SYSTEM_PROMPT,
    EstimationClient,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient upstream failures."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_delay_seconds: float = 10.0

    def delay_for(self, retry_index: int, retry_after: float | None = None) -> float:
        """Return the wait before retry number ``retry_index`` (0-based)."""
        delay = self.initial_delay_seconds * self.backoff_factor**retry_index
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.max_delay_seconds)


@dataclass
class OpenAIEstimationClient(EstimationClient):
    """Estimation client backed by an OpenAI-compatible chat completions API."""

    client: AsyncOpenAI
    model: str
    timeout_seconds: float = 30.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def create(
        cls,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
    ) -> "OpenAIEstimationClient":
        """Create a client; the SDK's own retries are disabled."""
        client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            max_retries=0,
        )
        return cls(
            client=client,
            model=model,
            timeout_seconds=timeout_seconds,
            retry_policy=retry_policy or RetryPolicy(),
        )

    async def estimate(self, prompt: str) -> NutritionEstimate:
        """Request an estimate, retrying transient failures."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._request(prompt)
            except TransientUpstreamError as exc:
                if attempt >= self.retry_policy.max_attempts:
                    raise
                delay = self.retry_policy.delay_for(
                    attempt - 1, getattr(exc, "retry_after_seconds", None)
                )
                _logger.warning(
                    "Estimation request failed (attempt %s/%s, %s), retrying in %.1fs",
                    attempt,
                    self.retry_policy.max_attempts,
                    type(exc).__name__,
                    delay,
                )
                await self.sleep(delay)

    async def close(self) -> None:
        await self.client.close()

    async def _request(self, prompt: str) -> NutritionEstimate:
        try:
            async with asyncio.timeout(self.timeout_seconds):
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    response_format={
                        "type": "json_schema",
                        "json_schema": {
                            "name": "nutrition_estimate",
                            "strict": False,
                            "schema": ESTIMATE_SCHEMA,
                        },
                    },
                    temperature=0.2,
                )
        except TimeoutError as exc:
            raise UpstreamTimeoutError(
                f"Request timed out after {self.timeout_seconds}s"
            ) from exc
        except openai.APIError as exc:
            raise _classify(exc) from exc
        return _parse_estimate(response)


def _classify(exc: openai.APIError) -> EstimationClientError:
    """Map an SDK error onto the upstream error taxonomy."""
    if isinstance(exc, openai.APITimeoutError):
        return UpstreamTimeoutError(exc.message)
    if isinstance(exc, openai.APIConnectionError):
        return UpstreamServerError(exc.message)
    if isinstance(exc, openai.AuthenticationError | openai.PermissionDeniedError):
        return UpstreamUnauthorizedError(exc.message)
    if isinstance(exc, openai.RateLimitError):
        return UpstreamRateLimitedError(exc.message, _retry_after(exc.response))
    if isinstance(exc, openai.InternalServerError):
        return UpstreamServerError(exc.message)
    if isinstance(exc, openai.APIStatusError):
        return UpstreamClientError(exc.message, exc.status_code)
    return UpstreamParseError(exc.message)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _parse_estimate(response: object) -> NutritionEstimate:
    """Validate the model's JSON answer."""
    choices = getattr(response, "choices", None)
    if not choices:
        raise UpstreamParseError("No choices in response")
    content = choices[0].message.content
    if not content:
        raise UpstreamParseError("Empty response content")
    try:
        estimate = NutritionEstimate.model_validate_json(content)
    except PydanticValidationError as exc:
        raise UpstreamParseError("Failed to parse estimate JSON") from exc
    if estimate.error:
        return NutritionEstimate(error=estimate.error)
    if not estimate.is_complete():
        raise UpstreamParseError("Invalid nutritional values in response")
    return estimate
