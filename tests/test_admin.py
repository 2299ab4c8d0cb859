"""Tests for admin user management and promotion."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.core.config import get_settings
from fittrack.models.exercise import Exercise
from fittrack.models.progress import Progress
from fittrack.models.user import User
from fittrack.models.workout import Workout
from fittrack.models.workout_session import WorkoutSession

SETUP_SECRET = "test-setup-secret"


@pytest.fixture
def setup_secret(monkeypatch):
    monkeypatch.setattr(get_settings(), "admin_setup_secret", SETUP_SECRET)
    return SETUP_SECRET


class TestAdminAccess:
    """Tests for the admin role gate."""

    async def test_regular_user_forbidden(self, auth_client: AsyncClient):
        response = await auth_client.get("/api/admin/users")

        assert response.status_code == 403
        assert response.json()["error"] == "Admin access required"

    async def test_anonymous_unauthorized(self, client: AsyncClient):
        response = await client.get("/api/admin/users")

        assert response.status_code == 401


class TestUserList:
    """Tests for listing accounts."""

    async def test_list_with_counters(
        self,
        admin_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        progress_entries: list[Progress],
        add_session,
    ):
        await add_session(test_user, sample_workout, exercises[0], datetime.now(timezone.utc))

        response = await admin_client.get("/api/admin/users", params={"sortBy": "email", "sortOrder": "asc"})

        assert response.status_code == 200
        data = response.json()
        assert [u["email"] for u in data["users"]] == ["admin@example.com", "test@example.com"]
        assert data["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}

        user = data["users"][1]
        assert user["hasPassword"] is True
        assert user["totalWorkouts"] == 1
        assert user["totalSessions"] == 1
        assert user["totalProgressEntries"] == 2
        assert user["lastWorkoutSession"] is not None
        assert "passwordHash" not in user

    async def test_search_and_pagination(
        self,
        admin_client: AsyncClient,
        test_user: User,
        other_user: User,
    ):
        response = await admin_client.get("/api/admin/users", params={"search": "OTHER"})
        assert [u["email"] for u in response.json()["users"]] == ["other@example.com"]

        response = await admin_client.get("/api/admin/users", params={"limit": 2, "page": 2})
        data = response.json()
        assert len(data["users"]) == 1
        assert data["pagination"]["pages"] == 2

    @pytest.mark.parametrize("search", ["%", "_", "t_st"])
    async def test_search_wildcards_are_literal(
        self,
        admin_client: AsyncClient,
        test_user: User,
        other_user: User,
        search: str,
    ):
        response = await admin_client.get("/api/admin/users", params={"search": search})

        assert response.status_code == 200
        assert response.json()["users"] == []
        assert response.json()["pagination"]["total"] == 0

    async def test_search_matches_literal_underscore(
        self,
        admin_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
    ):
        db_session.add(User(email="first_last@example.com", name="First Last"))
        await db_session.commit()

        response = await admin_client.get("/api/admin/users", params={"search": "t_l"})

        assert [u["email"] for u in response.json()["users"]] == ["first_last@example.com"]

    async def test_invalid_sort_field(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/admin/users", params={"sortBy": "passwordHash"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid sort field"
        assert "email" in body["details"]

    async def test_invalid_sort_order(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/admin/users", params={"sortOrder": "sideways"})

        assert response.status_code == 400


class TestUserDetail:
    """Tests for a single account view."""

    async def test_detail_stats(
        self,
        admin_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        progress_entries: list[Progress],
        add_session,
    ):
        now = datetime.now(timezone.utc)
        await add_session(test_user, sample_workout, exercises[0], now - timedelta(days=3), 1200)
        await add_session(test_user, sample_workout, exercises[1], now, 2400)

        response = await admin_client.get(f"/api/admin/users/{test_user.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["counts"] == {"workouts": 1, "workoutSessions": 2, "progress": 2}
        assert data["workouts"][0]["sessionCount"] == 2
        assert data["workoutSessions"][0]["exerciseCount"] == 1
        assert data["stats"]["totalWorkoutTime"] == 3600
        assert data["stats"]["averageSessionDuration"] == 1800
        assert data["stats"]["progressTrend"] == {"weightChange": -2.0, "bodyFatChange": -1.0}

    async def test_detail_not_found(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/admin/users/9999")

        assert response.status_code == 404


class TestUserUpdateDelete:
    """Tests for editing and removing accounts."""

    async def test_update_user(self, admin_client: AsyncClient, test_user: User):
        response = await admin_client.patch(
            f"/api/admin/users/{test_user.id}", json={"name": "Renamed", "weight": 75}
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["weight"] == 75

    async def test_update_without_fields(self, admin_client: AsyncClient, test_user: User):
        response = await admin_client.patch(
            f"/api/admin/users/{test_user.id}", json={"role": "admin"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "No valid fields to update"

    async def test_delete_self(
        self,
        admin_client: AsyncClient,
        admin_user: User,
        db_session: AsyncSession,
    ):
        admin_id = admin_user.id

        response = await admin_client.delete(f"/api/admin/users/{admin_id}")

        assert response.status_code == 400
        assert response.json()["error"] == "You cannot delete your own account"
        result = await db_session.execute(select(func.count(User.id)).where(User.id == admin_id))
        assert result.scalar() == 1

    async def test_delete_missing(self, admin_client: AsyncClient):
        response = await admin_client.delete("/api/admin/users/9999")

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    async def test_delete_cascades(
        self,
        admin_client: AsyncClient,
        test_user: User,
        sample_workout: Workout,
        exercises: list[Exercise],
        progress_entries: list[Progress],
        add_session,
        db_session: AsyncSession,
    ):
        """Workouts, sessions and progress go with the account."""
        await add_session(test_user, sample_workout, exercises[0], datetime.now(timezone.utc))
        user_id = test_user.id

        response = await admin_client.delete(f"/api/admin/users/{user_id}")

        assert response.status_code == 200
        assert response.json()["message"] == "User deleted successfully"
        for model in (Workout, WorkoutSession, Progress):
            result = await db_session.execute(
                select(func.count(model.id)).where(model.user_id == user_id)
            )
            assert result.scalar() == 0


class TestAdminSetup:
    """Tests for promoting an account with the setup secret."""

    async def test_promote(
        self,
        auth_client: AsyncClient,
        other_user: User,
        setup_secret: str,
    ):
        response = await auth_client.post(
            "/api/admin/setup",
            json={"adminEmail": "other@example.com", "secretKey": setup_secret},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "User promoted to admin successfully"
        assert data["user"] == {"id": other_user.id, "email": "other@example.com", "role": "admin"}

    async def test_wrong_secret(self, auth_client: AsyncClient, setup_secret: str):
        response = await auth_client.post(
            "/api/admin/setup",
            json={"adminEmail": "test@example.com", "secretKey": "guess"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Invalid secret key"

    async def test_unknown_email(self, auth_client: AsyncClient, setup_secret: str):
        response = await auth_client.post(
            "/api/admin/setup",
            json={"adminEmail": "ghost@example.com", "secretKey": setup_secret},
        )

        assert response.status_code == 404

    async def test_requires_auth(self, client: AsyncClient, setup_secret: str):
        response = await client.post(
            "/api/admin/setup",
            json={"adminEmail": "test@example.com", "secretKey": setup_secret},
        )

        assert response.status_code == 401
