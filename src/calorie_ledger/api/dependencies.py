"""Shared request dependencies."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Header, HTTPException, Request, status

from calorie_ledger.errors import ValidationError

if TYPE_CHECKING:
    from calorie_ledger.containers import AppContainer


def get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def current_user_id(x_user_id: str | None = Header(default=None)) -> UUID:
    """Return the caller identity set by the fronting auth layer."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    try:
        return UUID(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity",
        ) from exc


def parse_date_param(value: str | None, field: str) -> date | None:
    """Parse an optional YYYY-MM-DD query or path value."""
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError({field: "Date must be in YYYY-MM-DD format"}) from exc


def parse_uuid_param(value: str, field: str = "id") -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValidationError({field: "Invalid UUID format"}) from exc


def page(total: int, limit: int, offset: int) -> dict[str, int]:
    return {"total": total, "limit": limit, "offset": offset}
