"""Supabase repository for AI estimation records."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from calorie_ledger.adapters.supabase_rows import (
    optional_float,
    optional_int,
    optional_uuid,
    parse_datetime,
)
from calorie_ledger.domain.estimations import (
    Estimation,
    EstimationStatus,
    NutritionEstimate,
)
from calorie_ledger.errors import UnexpectedError
from calorie_ledger.services.estimations import EstimationRepository

_ESTIMATION_COLUMNS = (
    "id, user_id, prompt, status, generated_calories, generated_protein, "
    "generated_carbs, generated_fats, assumptions, error_message, model_used, "
    "generation_duration, meal_id, created_at"
)


@dataclass
class SupabaseEstimationRepository(EstimationRepository):
    """Supabase implementation for the ai_generations table."""

    client: Client

    def create_pending(self, user_id: UUID, prompt: str) -> Estimation:
        response = (
            self.client.table("ai_generations")
            .insert(
                {
                    "user_id": str(user_id),
                    "prompt": prompt,
                    "status": str(EstimationStatus.PENDING),
                }
            )
            .execute()
        )
        if not response.data:
            raise UnexpectedError("Failed to create AI generation")
        return _parse_estimation(response.data[0])

    def mark_completed(
        self,
        estimation: Estimation,
        estimate: NutritionEstimate,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        return self._finish(
            estimation,
            {
                "status": str(EstimationStatus.COMPLETED),
                "generated_calories": estimate.rounded_calories(),
                "generated_protein": estimate.protein,
                "generated_carbs": estimate.carbs,
                "generated_fats": estimate.fats,
                "assumptions": estimate.assumptions,
                "model_used": model_used,
                "generation_duration": duration_ms,
            },
        )

    def mark_failed(
        self,
        estimation: Estimation,
        error_message: str,
        model_used: str,
        duration_ms: int,
    ) -> Estimation:
        return self._finish(
            estimation,
            {
                "status": str(EstimationStatus.FAILED),
                "error_message": error_message,
                "model_used": model_used,
                "generation_duration": duration_ms,
            },
        )

    def get_estimation(self, user_id: UUID, estimation_id: UUID) -> Estimation | None:
        response = (
            self.client.table("ai_generations")
            .select(_ESTIMATION_COLUMNS)
            .eq("id", str(estimation_id))
            .eq("user_id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_estimation(response.data[0])

    def list_estimations(
        self, user_id: UUID, limit: int, offset: int
    ) -> list[Estimation]:
        response = (
            self.client.table("ai_generations")
            .select(_ESTIMATION_COLUMNS)
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        return [_parse_estimation(row) for row in response.data or []]

    def count_estimations(self, user_id: UUID) -> int:
        response = (
            self.client.table("ai_generations")
            .select("id", count="exact")
            .eq("user_id", str(user_id))
            .execute()
        )
        return response.count or 0

    def link_meal(self, user_id: UUID, estimation_id: UUID, meal_id: UUID) -> None:
        self.client.table("ai_generations").update({"meal_id": str(meal_id)}).eq(
            "id", str(estimation_id)
        ).eq("user_id", str(user_id)).execute()

    def clear_meal_link(self, user_id: UUID, meal_id: UUID) -> None:
        self.client.table("ai_generations").update({"meal_id": None}).eq(
            "meal_id", str(meal_id)
        ).eq("user_id", str(user_id)).execute()

    def _finish(self, estimation: Estimation, payload: dict[str, object]) -> Estimation:
        response = (
            self.client.table("ai_generations")
            .update(payload)
            .eq("id", str(estimation.id))
            .eq("user_id", str(estimation.user_id))
            .execute()
        )
        if not response.data:
            raise UnexpectedError("Failed to update AI generation")
        return _parse_estimation(response.data[0])


def _parse_estimation(row: dict[str, object]) -> Estimation:
    return Estimation(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        prompt=str(row["prompt"]),
        status=EstimationStatus(row["status"]),
        generated_calories=optional_int(row.get("generated_calories")),
        generated_protein=optional_float(row.get("generated_protein")),
        generated_carbs=optional_float(row.get("generated_carbs")),
        generated_fats=optional_float(row.get("generated_fats")),
        assumptions=row.get("assumptions"),
        error_message=row.get("error_message"),
        model_used=row.get("model_used"),
        generation_duration_ms=optional_int(row.get("generation_duration")),
        meal_id=optional_uuid(row.get("meal_id")),
        created_at=parse_datetime(row["created_at"]),
    )
