"""Daily progress endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Request

from calorie_ledger.api.dependencies import (
    current_user_id,
    get_container,
    page,
    parse_date_param,
)
from calorie_ledger.errors import ValidationError

if TYPE_CHECKING:
    from calorie_ledger.domain.progress import DailyProgress

router = APIRouter(prefix="/api/v1/daily-progress", tags=["daily-progress"])


@router.get("")
async def list_progress(  # noqa: PLR0913
    request: Request,
    user_id: UUID = Depends(current_user_id),
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int = 30,
    offset: int = 0,
) -> dict[str, object]:
    """Return progress for days with logged meals, newest first."""
    days, total = get_container(request).progress_aggregator.get_range(
        user_id,
        date_from=parse_date_param(date_from, "date_from"),
        date_to=parse_date_param(date_to, "date_to"),
        limit=limit,
        offset=offset,
    )
    return {
        "data": [progress_body(progress) for progress in days],
        "pagination": page(total, limit, offset),
    }


@router.get("/{day}")
async def progress_for_day(
    day: str, request: Request, user_id: UUID = Depends(current_user_id)
) -> dict[str, object]:
    """Return progress for one day, including days without meals."""
    target = parse_date_param(day, "date")
    if target is None:
        raise ValidationError({"date": "Date is required"})
    progress = get_container(request).progress_aggregator.get_by_date(user_id, target)
    return progress_body(progress)


def progress_body(progress: DailyProgress) -> dict[str, object]:
    body = asdict(progress)
    body["date"] = body.pop("day")
    return body
