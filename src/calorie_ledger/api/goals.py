"""Calorie goal endpoints."""

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
from calorie_ledger.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from calorie_ledger.domain.goals import CalorieGoal

router = APIRouter(prefix="/api/v1/calorie-goals", tags=["calorie-goals"])


@router.get("")
async def list_goals(
    request: Request,
    user_id: UUID = Depends(current_user_id),
    limit: int = 50,
    offset: int = 0,
) -> dict[str, object]:
    """Return the goal history, newest effective date first."""
    goals, total = get_container(request).goal_resolver.list_goals(
        user_id, limit=limit, offset=offset
    )
    return {
        "data": [_goal_body(goal) for goal in goals],
        "pagination": page(total, limit, offset),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_goal(
    request: Request,
    payload: dict[str, Any] = Body(...),
    user_id: UUID = Depends(current_user_id),
) -> dict[str, object]:
    """Append a goal that starts tomorrow or on a given future date."""
    effective_from = payload.get("effective_from")
    if effective_from is not None and not isinstance(effective_from, str):
        raise ValidationError({"effective_from": "Date must be in YYYY-MM-DD format"})
    goal = get_container(request).goal_resolver.create(
        user_id,
        payload.get("daily_goal"),
        parse_date_param(effective_from, "effective_from"),
    )
    return _goal_body(goal)


@router.get("/current")
async def current_goal(
    request: Request,
    user_id: UUID = Depends(current_user_id),
    day: str | None = Query(default=None, alias="date"),
) -> dict[str, object]:
    """Return the goal that applies to a date (today by default)."""
    resolver = get_container(request).goal_resolver
    target = parse_date_param(day, "date") or resolver.today()
    return _goal_body(resolver.resolve(user_id, target))


@router.get("/by-date")
async def goal_by_date(
    request: Request,
    user_id: UUID = Depends(current_user_id),
    day: str | None = Query(default=None, alias="date"),
) -> dict[str, object]:
    """Return the goal starting exactly on a date."""
    target = parse_date_param(day, "date")
    if target is None:
        raise ValidationError({"date": "Date is required"})
    goal = get_container(request).goal_resolver.resolve_exact(user_id, target)
    if goal is None:
        raise NotFoundError("No calorie goal starts on this date")
    return _goal_body(goal)


@router.patch("/{goal_id}")
async def update_goal(
    goal_id: str,
    request: Request,
    payload: dict[str, Any] = Body(...),
    user_id: UUID = Depends(current_user_id),
) -> dict[str, object]:
    """Change a goal that has not taken effect yet."""
    goal = get_container(request).goal_resolver.update(
        user_id, parse_uuid_param(goal_id), payload.get("daily_goal")
    )
    return _goal_body(goal)


@router.delete("/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(
    goal_id: str, request: Request, user_id: UUID = Depends(current_user_id)
) -> Response:
    deleted = get_container(request).goal_resolver.delete(
        user_id, parse_uuid_param(goal_id)
    )
    if not deleted:
        raise NotFoundError("Calorie goal not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _goal_body(goal: CalorieGoal) -> dict[str, object]:
    body = asdict(goal)
    body["is_default"] = goal.is_default
    return body
