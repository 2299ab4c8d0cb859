"""Tests for the exercise catalog endpoints."""

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.data.exercise_catalog import SYSTEM_EXERCISES
from fittrack.models.exercise import Exercise
from fittrack.models.user import User


class TestExerciseList:
    """Tests for listing and filtering."""

    async def test_list_is_public_and_sorted(self, client: AsyncClient, exercises):
        """Anonymous callers see the whole catalog ordered by name."""
        response = await client.get("/api/exercises")

        assert response.status_code == 200
        names = [e["name"] for e in response.json()]
        assert names == sorted(names)
        assert len(names) == 5

    async def test_filter_by_muscle_group(self, client: AsyncClient, exercises):
        response = await client.get("/api/exercises", params={"muscleGroup": "chest"})

        data = response.json()
        assert {e["name"] for e in data} == {"Bench Press", "Push-Up"}
        assert all(e["muscleGroup"] == "chest" for e in data)

    async def test_search_matches_description(self, client: AsyncClient, exercises):
        """Search is case-insensitive across name, description and muscle group."""
        response = await client.get("/api/exercises", params={"search": "BODYWEIGHT"})

        assert [e["name"] for e in response.json()] == ["Push-Up"]

    async def test_limit(self, client: AsyncClient, exercises):
        response = await client.get("/api/exercises", params={"limit": 2})

        assert len(response.json()) == 2

    async def test_get_exercise_not_found(self, client: AsyncClient):
        response = await client.get("/api/exercises/9999")

        assert response.status_code == 404
        assert response.json()["error"] == "Exercise not found"


class TestExerciseCreate:
    """Tests for user-authored exercises."""

    async def test_create_requires_auth(self, client: AsyncClient):
        response = await client.post(
            "/api/exercises", json={"name": "Curl", "muscleGroup": "arms"}
        )

        assert response.status_code == 401

    async def test_create_defaults_difficulty(self, auth_client: AsyncClient, test_user: User):
        response = await auth_client.post(
            "/api/exercises", json={"name": "Cable Curl", "muscleGroup": "arms"}
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Cable Curl"
        assert data["difficulty"] == "intermediate"

    async def test_create_missing_muscle_group(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/exercises", json={"name": "Mystery"})

        assert response.status_code == 400
        assert response.json()["error"] == "Name and muscle group are required"


class TestExerciseCounts:
    """Tests for count and meta endpoints."""

    async def test_count_by_comma_separated_groups(self, client: AsyncClient, exercises):
        response = await client.get("/api/exercises/count", params={"muscleGroups": "chest,legs"})

        assert response.status_code == 200
        assert response.json() == {"count": 3}

    async def test_count_requires_groups(self, client: AsyncClient):
        response = await client.get("/api/exercises/count")

        assert response.status_code == 400

    async def test_counts_per_group_keep_request_order(self, client: AsyncClient, exercises):
        response = await client.post(
            "/api/exercises/count",
            json={"muscleGroups": ["legs", "shoulders", "chest"]},
        )

        assert response.json()["counts"] == [
            {"muscleGroup": "legs", "count": 1},
            {"muscleGroup": "shoulders", "count": 0},
            {"muscleGroup": "chest", "count": 2},
        ]

    async def test_meta(self, client: AsyncClient, exercises):
        response = await client.get("/api/exercises/meta")

        data = response.json()
        assert data["muscleGroups"] == ["back", "chest", "core", "legs"]
        assert data["difficulties"] == ["advanced", "beginner", "intermediate"]
        assert data["stats"]["totalExercises"] == 5
        assert data["stats"]["byMuscleGroup"]["chest"] == 2


class TestExerciseSeed:
    """Tests for seeding the system catalog."""

    async def test_seed_requires_admin(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/exercises/seed")

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    async def test_seed_is_idempotent(
        self,
        admin_client: AsyncClient,
        db_session: AsyncSession,
    ):
        first = await admin_client.post("/api/exercises/seed")
        second = await admin_client.post("/api/exercises/seed")

        assert first.json()["created"] == len(SYSTEM_EXERCISES)
        assert second.json()["created"] == 0

        result = await db_session.execute(
            select(func.count(Exercise.id)).where(Exercise.user_id.is_(None))
        )
        assert result.scalar() == len(SYSTEM_EXERCISES)
