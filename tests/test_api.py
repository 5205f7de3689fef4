"""Tests for the HTTP API."""

from dataclasses import replace
from datetime import timedelta
from uuid import UUID, uuid4

from fastapi.testclient import TestClient

from calorie_ledger.api.app import create_app
from calorie_ledger.domain.meals import MealEstimationInfo
from tests.conftest import TODAY, at


def _headers(user_id) -> dict[str, str]:  # type: ignore[no-untyped-def]
    return {"X-User-Id": str(user_id)}


def _meal_payload(**overrides) -> dict[str, object]:  # type: ignore[no-untyped-def]
    payload: dict[str, object] = {
        "description": "Greek yogurt",
        "calories": 150,
        "protein": 15.0,
        "carbs": 8.0,
        "fats": 6.5,
        "category": "snack",
        "meal_timestamp": at(TODAY, 10).isoformat(),
    }
    payload.update(overrides)
    return payload


def test_health(container) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_lifespan_starts_and_stops(container) -> None:
    with TestClient(create_app(container)) as client:
        assert client.get("/health").status_code == 200


def test_requests_require_user_header(container) -> None:
    client = TestClient(create_app(container))

    assert client.get("/api/v1/meals").status_code == 401
    assert (
        client.get("/api/v1/meals", headers={"X-User-Id": "nope"}).status_code == 401
    )


def test_meal_crud(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)

    created = client.post("/api/v1/meals", json=_meal_payload(), headers=headers)
    assert created.status_code == 201
    body = created.json()
    assert body["input_method"] == "manual"
    assert body["warnings"] == []
    meal_id = body["id"]

    fetched = client.get(f"/api/v1/meals/{meal_id}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "Greek yogurt"

    patched = client.patch(
        f"/api/v1/meals/{meal_id}", json={"calories": 400}, headers=headers
    )
    assert patched.status_code == 200
    assert patched.json()["calories"] == 400
    assert patched.json()["warnings"][0]["field"] == "macronutrients"

    listed = client.get(
        "/api/v1/meals", params={"date": TODAY.isoformat()}, headers=headers
    )
    assert listed.status_code == 200
    assert listed.json()["pagination"] == {"total": 1, "limit": 50, "offset": 0}

    first = client.delete(f"/api/v1/meals/{meal_id}", headers=headers)
    second = client.delete(f"/api/v1/meals/{meal_id}", headers=headers)
    assert first.status_code == 204
    assert second.status_code == 404


def test_meal_validation_error_details(container, user_id) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/api/v1/meals", json=_meal_payload(calories=0), headers=_headers(user_id)
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert "calories" in body["details"]


def test_meal_invalid_identifiers_and_queries(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)

    assert client.get("/api/v1/meals/not-a-uuid", headers=headers).status_code == 400
    assert (
        client.get(
            "/api/v1/meals", params={"limit": "abc"}, headers=headers
        ).status_code
        == 400
    )
    assert (
        client.get(
            "/api/v1/meals", params={"date": "15-06-2025"}, headers=headers
        ).status_code
        == 400
    )


def test_meals_of_other_users_are_not_found(container, user_id) -> None:
    client = TestClient(create_app(container))
    created = client.post(
        "/api/v1/meals", json=_meal_payload(), headers=_headers(user_id)
    ).json()

    response = client.get(f"/api/v1/meals/{created['id']}", headers=_headers(uuid4()))

    assert response.status_code == 404
    assert response.json()["error"] == "NOT_FOUND"


def test_calorie_goal_endpoints(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)

    current = client.get("/api/v1/calorie-goals/current", headers=headers)
    assert current.status_code == 200
    assert current.json()["daily_goal"] == 2000
    assert current.json()["is_default"] is True

    created = client.post(
        "/api/v1/calorie-goals", json={"daily_goal": 2200}, headers=headers
    )
    assert created.status_code == 201
    tomorrow = (TODAY + timedelta(days=1)).isoformat()
    assert created.json()["effective_from"] == tomorrow

    conflict = client.post(
        "/api/v1/calorie-goals", json={"daily_goal": 2300}, headers=headers
    )
    assert conflict.status_code == 409
    assert conflict.json()["error"] == "CONFLICT"

    by_date = client.get(
        "/api/v1/calorie-goals/by-date", params={"date": tomorrow}, headers=headers
    )
    assert by_date.json()["daily_goal"] == 2200

    goal_id = created.json()["id"]
    patched = client.patch(
        f"/api/v1/calorie-goals/{goal_id}", json={"daily_goal": 2400}, headers=headers
    )
    assert patched.status_code == 200
    assert patched.json()["daily_goal"] == 2400

    listed = client.get("/api/v1/calorie-goals", headers=headers).json()
    assert listed["pagination"]["total"] == 1

    deleted = client.delete(f"/api/v1/calorie-goals/{goal_id}", headers=headers)
    assert deleted.status_code == 204


def test_calorie_goal_in_effect_cannot_be_patched(
    container, goal_repository, user_id
) -> None:
    client = TestClient(create_app(container))
    goal = goal_repository.add(user_id, 2000, TODAY)

    response = client.patch(
        f"/api/v1/calorie-goals/{goal.id}",
        json={"daily_goal": 2500},
        headers=_headers(user_id),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "BAD_STATE"


def test_calorie_goal_explicit_date_must_be_future(container, user_id) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/api/v1/calorie-goals",
        json={"daily_goal": 2000, "effective_from": TODAY.isoformat()},
        headers=_headers(user_id),
    )

    assert response.status_code == 400
    assert "effective_from" in response.json()["details"]


def test_daily_progress_endpoints(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)
    client.post("/api/v1/meals", json=_meal_payload(calories=1950), headers=headers)

    day = client.get(f"/api/v1/daily-progress/{TODAY.isoformat()}", headers=headers)
    assert day.status_code == 200
    assert day.json()["total_calories"] == 1950
    assert day.json()["status"] == "on_track"
    assert day.json()["percentage"] == 97.5

    empty = client.get(
        f"/api/v1/daily-progress/{(TODAY - timedelta(days=7)).isoformat()}",
        headers=headers,
    )
    assert empty.json()["status"] == "under"

    listed = client.get("/api/v1/daily-progress", headers=headers).json()
    assert listed["pagination"] == {"total": 1, "limit": 30, "offset": 0}
    assert listed["data"][0]["date"] == TODAY.isoformat()
    assert "day" not in listed["data"][0]
    assert day.json()["date"] == TODAY.isoformat()


def test_daily_progress_rejects_bad_dates(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)
    future = (TODAY + timedelta(days=1)).isoformat()

    for day in (future, "2025-13-01"):
        response = client.get(f"/api/v1/daily-progress/{day}", headers=headers)
        assert response.status_code == 400


def test_ai_generation_endpoints(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)

    created = client.post(
        "/api/v1/ai-generations", json={"prompt": "two eggs and toast"}, headers=headers
    )
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "completed"
    assert body["generated_calories"] == 520

    fetched = client.get(f"/api/v1/ai-generations/{body['id']}", headers=headers)
    assert fetched.json()["id"] == body["id"]

    listed = client.get("/api/v1/ai-generations", headers=headers).json()
    assert listed["pagination"] == {"total": 1, "limit": 20, "offset": 0}

    meal = client.post(
        "/api/v1/meals",
        json=_meal_payload(
            calories=520,
            protein=30.0,
            carbs=55.0,
            fats=18.0,
            input_method="ai",
            ai_generation_id=body["id"],
        ),
        headers=headers,
    )
    assert meal.status_code == 201
    assert meal.json()["ai_generation_id"] == body["id"]
    assert "estimation_id" not in meal.json()


def test_meal_reads_embed_linked_estimation(
    container, meal_repository, user_id
) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)
    estimation = client.post(
        "/api/v1/ai-generations", json={"prompt": "two eggs"}, headers=headers
    ).json()
    created = client.post(
        "/api/v1/meals",
        json=_meal_payload(input_method="ai", ai_generation_id=estimation["id"]),
        headers=headers,
    ).json()
    meal_id = UUID(created["id"])
    meal_repository.meals[meal_id] = replace(
        meal_repository.meals[meal_id],
        estimation=MealEstimationInfo(
            id=UUID(estimation["id"]),
            prompt="two eggs",
            assumptions="Large eggs",
            model_used="test/model",
            generation_duration_ms=42,
        ),
    )

    fetched = client.get(f"/api/v1/meals/{meal_id}", headers=headers).json()
    listed = client.get("/api/v1/meals", headers=headers).json()

    assert fetched["ai_generation"] == {
        "id": estimation["id"],
        "prompt": "two eggs",
        "assumptions": "Large eggs",
        "model_used": "test/model",
        "generation_duration_ms": 42,
    }
    assert listed["data"][0]["ai_generation"]["assumptions"] == "Large eggs"


def test_manual_meal_has_no_embedded_estimation(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)
    created = client.post("/api/v1/meals", json=_meal_payload(), headers=headers)

    fetched = client.get(
        f"/api/v1/meals/{created.json()['id']}", headers=headers
    ).json()

    assert fetched["ai_generation"] is None
    assert fetched["ai_generation_id"] is None


def test_ai_generation_rate_limit(container, user_id) -> None:
    client = TestClient(create_app(container))
    headers = _headers(user_id)
    for _ in range(10):
        client.post("/api/v1/ai-generations", json={"prompt": "soup"}, headers=headers)

    response = client.post(
        "/api/v1/ai-generations", json={"prompt": "soup"}, headers=headers
    )

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.json()["retry_after"] == 60_000


def test_ai_generation_prompt_validation(container, user_id) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/api/v1/ai-generations", json={"prompt": ""}, headers=_headers(user_id)
    )

    assert response.status_code == 400
    assert "prompt" in response.json()["details"]


def test_unexpected_errors_are_opaque(container, goal_repository, user_id) -> None:
    def broken(*_args) -> None:  # type: ignore[no-untyped-def]
        raise RuntimeError("database exploded")

    goal_repository.get_latest_on_or_before = broken
    client = TestClient(create_app(container), raise_server_exceptions=False)

    response = client.get("/api/v1/calorie-goals/current", headers=_headers(user_id))

    assert response.status_code == 500
    assert response.json() == {
        "error": "INTERNAL_SERVER_ERROR",
        "message": "An unexpected error occurred",
    }
