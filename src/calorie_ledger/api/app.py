"""FastAPI application factory."""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from calorie_ledger.api.errors import register_error_handlers
from calorie_ledger.api.estimations import router as estimations_router
from calorie_ledger.api.goals import router as goals_router
from calorie_ledger.api.meals import router as meals_router
from calorie_ledger.api.progress import router as progress_router
from calorie_ledger.app_logging import configure_logging
from calorie_ledger.containers import AppContainer


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        sweeper = asyncio.create_task(
            state_container.rate_limiter.run_sweeper(
                state_container.settings.rate_limit_sweep_seconds
            )
        )
        logger.info(
            "Calorie ledger started: environment=%s",
            state_container.settings.environment,
        )
        yield
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await state_container.close_resources()

    app = FastAPI(title="Calorie Ledger", lifespan=lifespan)
    app.state.container = container
    register_error_handlers(app)

    app.include_router(meals_router)
    app.include_router(goals_router)
    app.include_router(progress_router)
    app.include_router(estimations_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
