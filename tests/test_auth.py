"""Tests for authentication endpoints."""

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fittrack.models.user import User


class TestRegistration:
    """Tests for password sign-up."""

    async def test_register_success(self, client: AsyncClient, db_session: AsyncSession):
        """Test creating a new account."""
        response = await client.post(
            "/api/auth/register",
            json={"name": "New User", "email": "new@example.com", "password": "secret123"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["message"] == "User registered successfully"
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["role"] == "user"
        assert data["user"]["onboardingCompleted"] is False
        assert "passwordHash" not in data["user"]

        result = await db_session.execute(select(User).where(User.email == "new@example.com"))
        user = result.scalar_one()
        assert user.password_hash and user.password_hash != "secret123"

    async def test_register_duplicate_email(self, client: AsyncClient, test_user: User):
        """Test that an existing email is rejected."""
        response = await client.post(
            "/api/auth/register",
            json={"name": "Dup", "email": "test@example.com", "password": "secret123"},
        )

        assert response.status_code == 409
        assert response.json()["error"] == "User with this email already exists"

    async def test_register_invalid_email(self, client: AsyncClient):
        """Test that validation failures use the error envelope with 400."""
        response = await client.post(
            "/api/auth/register",
            json={"name": "Bad", "email": "not-an-email", "password": "secret123"},
        )

        assert response.status_code == 400
        assert "error" in response.json()


class TestLogin:
    """Tests for login, logout and identity."""

    async def test_login_success(
        self,
        client: AsyncClient,
        test_user: User,
        session_store: dict,
    ):
        """Test successful login with valid credentials."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "test@example.com", "password": "testpassword123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Login successful"
        assert data["user"]["email"] == "test@example.com"
        assert data["user"]["lastLoginAt"] is not None
        assert "session_id=" in response.headers["set-cookie"]
        assert session_store[f"test_session_{test_user.id}"]["email"] == "test@example.com"

    async def test_login_invalid_password(self, client: AsyncClient, test_user: User):
        """Test login with wrong password."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "test@example.com", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Incorrect email or password"

    async def test_login_unknown_email(self, client: AsyncClient, test_user: User):
        response = await client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": "testpassword123"},
        )

        assert response.status_code == 401

    async def test_get_me_authenticated(self, auth_client: AsyncClient, test_user: User):
        """Test getting current user when authenticated."""
        response = await auth_client.get("/api/auth/me")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_user.id
        assert data["name"] == "Test User"

    async def test_get_me_unauthenticated(self, client: AsyncClient):
        """Test getting current user when not authenticated."""
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    async def test_logout(self, auth_client: AsyncClient, session_store: dict, test_user: User):
        """Test logout removes the stored session."""
        response = await auth_client.post("/api/auth/logout")

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"
        assert f"test_session_{test_user.id}" not in session_store


class TestAdminCheck:
    """Tests for the admin role check."""

    async def test_check_admin_anonymous(self, client: AsyncClient):
        response = await client.get("/api/auth/check-admin")

        assert response.status_code == 200
        assert response.json() == {"isAdmin": False}

    async def test_check_admin_regular_user(self, auth_client: AsyncClient):
        response = await auth_client.get("/api/auth/check-admin")

        assert response.json() == {"isAdmin": False}

    async def test_check_admin_admin(self, admin_client: AsyncClient):
        response = await admin_client.get("/api/auth/check-admin")

        assert response.json() == {"isAdmin": True}
