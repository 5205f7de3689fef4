"""Meal endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING, Any
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from calorie_ledger.api.dependencies import (
    current_user_id,
    get_container,
    page,
    parse_date_param,
    parse_uuid_param,
)
from calorie_ledger.errors import NotFoundError

if TYPE_CHECKING:
    from calorie_ledger.domain.meals import Meal, MealWriteResult

router = APIRouter(prefix="/api/v1/meals", tags=["meals"])


@router.get("")
async def list_meals(  # noqa: PLR0913
    request: Request,
    user_id: UUID = Depends(current_user_id),
    day: str | None = Query(default=None, alias="date"),
    date_from: str | None = None,
    date_to: str | None = None,
    category: str | None = None,
    limit: int = 50,
    offset: int = 0,
    sort: str = "desc",
) -> dict[str, object]:
    """Return the caller's meals with optional date and category filters."""
    meals, total = get_container(request).meal_ledger.list_meals(
        user_id,
        {
            "day": parse_date_param(day, "date"),
            "date_from": parse_date_param(date_from, "date_from"),
            "date_to": parse_date_param(date_to, "date_to"),
            "category": category,
            "limit": limit,
            "offset": offset,
            "sort": sort,
        },
    )
    return {
        "data": [meal_body(meal) for meal in meals],
        "pagination": page(total, limit, offset),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_meal(
    request: Request,
    payload: dict[str, Any] = Body(...),
    user_id: UUID = Depends(current_user_id),
) -> dict[str, object]:
    """Log a meal; AI meals must reference a completed estimation."""
    result = get_container(request).meal_ledger.create_meal(user_id, payload)
    return _write_response(result)


@router.get("/{meal_id}")
async def get_meal(
    meal_id: str, request: Request, user_id: UUID = Depends(current_user_id)
) -> dict[str, object]:
    meal = get_container(request).meal_ledger.get_meal(
        user_id, parse_uuid_param(meal_id)
    )
    return meal_body(meal)


@router.patch("/{meal_id}")
async def update_meal(
    meal_id: str,
    request: Request,
    payload: dict[str, Any] = Body(...),
    user_id: UUID = Depends(current_user_id),
) -> dict[str, object]:
    result = get_container(request).meal_ledger.update_meal(
        user_id, parse_uuid_param(meal_id), payload
    )
    return _write_response(result)


@router.delete("/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meal(
    meal_id: str, request: Request, user_id: UUID = Depends(current_user_id)
) -> Response:
    deleted = get_container(request).meal_ledger.delete_meal(
        user_id, parse_uuid_param(meal_id)
    )
    if not deleted:
        raise NotFoundError("Meal not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def meal_body(meal: Meal) -> dict[str, object]:
    """Serialize a meal using the ai_generation names clients send."""
    body = asdict(meal)
    body["ai_generation_id"] = body.pop("estimation_id")
    body["ai_generation"] = body.pop("estimation")
    return body


def _write_response(result: MealWriteResult) -> dict[str, object]:
    body = meal_body(result.meal)
    body["warnings"] = [asdict(warning) for warning in result.warnings]
    return body
