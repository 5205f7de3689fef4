"""AI estimation endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Body, Depends, Request, status

from calorie_ledger.api.dependencies import (
    current_user_id,
    get_container,
    page,
    parse_uuid_param,
)

router = APIRouter(prefix="/api/v1/ai-generations", tags=["ai-generations"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_estimation(
    request: Request,
    payload: dict[str, Any] = Body(...),
    user_id: UUID = Depends(current_user_id),
) -> dict[str, object]:
    """Estimate nutrition for a meal description.

    Upstream failures still answer 201 with a failed record.
    """
    estimation = await get_container(request).estimation_orchestrator.create(
        user_id, payload.get("prompt")
    )
    return asdict(estimation)


@router.get("")
async def list_estimations(
    request: Request,
    user_id: UUID = Depends(current_user_id),
    limit: int = 20,
    offset: int = 0,
) -> dict[str, object]:
    estimations, total = get_container(
        request
    ).estimation_orchestrator.list_estimations(user_id, limit=limit, offset=offset)
    return {"data": estimations, "pagination": page(total, limit, offset)}


@router.get("/{estimation_id}")
async def get_estimation(
    estimation_id: str, request: Request, user_id: UUID = Depends(current_user_id)
) -> dict[str, object]:
    estimation = get_container(request).estimation_orchestrator.get(
        user_id, parse_uuid_param(estimation_id)
    )
    return asdict(estimation)
