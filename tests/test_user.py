"""Tests for profile, fitness goal and onboarding endpoints."""

from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.models.user import User, UserFitnessGoal


class TestProfile:
    """Tests for the profile endpoints."""

    async def test_get_profile(self, auth_client: AsyncClient, test_user: User):
        response = await auth_client.get("/api/user/profile")

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "test@example.com"
        assert data["role"] == "user"
        assert data["spotifyConnected"] is False
        assert "passwordHash" not in data

    async def test_update_profile(self, auth_client: AsyncClient):
        response = await auth_client.patch(
            "/api/user/profile", json={"bio": "Lifting since 2020", "height": 180}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["bio"] == "Lifting since 2020"
        assert data["height"] == 180
        assert data["name"] == "Test User"

    async def test_update_profile_rejects_bad_values(self, auth_client: AsyncClient):
        response = await auth_client.patch("/api/user/profile", json={"weight": -5})

        assert response.status_code == 400

    async def test_profile_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/user/profile")

        assert response.status_code == 401


class TestFitnessGoals:
    """Tests for fitness goal selection."""

    async def test_save_and_read_goals(self, auth_client: AsyncClient):
        response = await auth_client.post(
            "/api/user/fitness-goals",
            json={"goals": ["strength-training", "mobility", "strength-training"]},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "goalsCreated": 2}

        response = await auth_client.get("/api/user/fitness-goals")
        assert response.json() == {
            "goals": ["strength-training", "mobility"],
            "onboardingCompleted": False,
        }

    async def test_save_replaces_previous_goals(
        self,
        auth_client: AsyncClient,
        test_user: User,
        db_session: AsyncSession,
    ):
        await auth_client.post("/api/user/fitness-goals", json={"goals": ["endurance"]})
        await auth_client.post("/api/user/fitness-goals", json={"goals": ["weight-loss"]})

        result = await db_session.execute(
            select(UserFitnessGoal.goal_type).where(UserFitnessGoal.user_id == test_user.id)
        )
        assert result.scalars().all() == ["weight-loss"]

    async def test_empty_goals(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/user/fitness-goals", json={"goals": []})

        assert response.status_code == 400
        assert response.json()["error"] == "Goals array is required and cannot be empty"

    async def test_unknown_goal(self, auth_client: AsyncClient):
        response = await auth_client.post(
            "/api/user/fitness-goals", json={"goals": ["endurance", "flying"]}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Unknown fitness goal", "details": ["flying"]}


class TestOnboarding:
    """Tests for the onboarding flag."""

    async def test_complete_onboarding(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/user/onboarding", json={"completed": True})

        assert response.status_code == 200
        assert response.json() == {"success": True, "onboardingCompleted": True}

        profile = await auth_client.get("/api/user/profile")
        assert profile.json()["onboardingCompleted"] is True

    async def test_non_boolean_rejected(self, auth_client: AsyncClient):
        response = await auth_client.post("/api/user/onboarding", json={"completed": "yes"})

        assert response.status_code == 400
        assert response.json()["error"] == "Completed must be a boolean value"

    async def test_onboarding_creates_missing_account(
        self,
        app,
        session_store: dict,
        db_session: AsyncSession,
    ):
        """A valid session without a local row gets one on first write."""
        session_store["external_session"] = {"email": "fresh@example.com", "name": "Fresh"}
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={"session_id": "external_session"},
        ) as ac:
            response = await ac.post("/api/user/onboarding", json={"completed": False})

        assert response.status_code == 200
        result = await db_session.execute(select(User).where(User.email == "fresh@example.com"))
        user = result.scalar_one()
        assert user.name == "Fresh"
        assert user.onboarding_completed is False
