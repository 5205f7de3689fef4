"""Supabase repository deriving daily totals from meal rows."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from supabase import Client

from calorie_ledger.adapters.supabase_rows import (
    MEAL_COLUMNS,
    parse_meal,
    utc_day_start,
)
from calorie_ledger.domain.progress import DailyTotals
from calorie_ledger.services.progress import ProgressRepository, aggregate_meals

# PostgREST's default max_rows; a shorter page means the range is exhausted.
DEFAULT_PAGE_SIZE = 1000


@dataclass
class SupabaseProgressRepository(ProgressRepository):
    """Reads meals page by page and sums them per UTC day on every call."""

    client: Client
    page_size: int = DEFAULT_PAGE_SIZE

    def list_daily_totals(
        self, user_id: UUID, date_from: date | None, date_to: date | None
    ) -> list[DailyTotals]:
        rows: list[dict[str, Any]] = []
        start = 0
        while True:
            response = (
                self._meals_query(user_id, date_from, date_to)
                .order("meal_timestamp")
                .order("id")
                .range(start, start + self.page_size - 1)
                .execute()
            )
            page = response.data or []
            rows.extend(page)
            if len(page) < self.page_size:
                break
            start += self.page_size
        return aggregate_meals(parse_meal(row) for row in rows)

    def _meals_query(
        self, user_id: UUID, date_from: date | None, date_to: date | None
    ) -> Any:
        request = (
            self.client.table("meals").select(MEAL_COLUMNS).eq("user_id", str(user_id))
        )
        if date_from is not None:
            request = request.gte("meal_timestamp", utc_day_start(date_from))
        if date_to is not None:
            request = request.lt(
                "meal_timestamp", utc_day_start(date_to + timedelta(days=1))
            )
        return request
