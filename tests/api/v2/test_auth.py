"""
Tests for the auth API endpoints (/api/v2/auth).
"""
import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.user import User

from tests.factories import InactiveUserFactory

AUTH_PREFIX = "/api/v2/auth"
TEST_PASSWORD = "testpassword123"  # noqa: S105, matches conftest


def _decode_token(token: str) -> dict:
    """Decode a JWT token issued by the application."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


class TestLogin:
    """Tests for POST /auth/login."""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, test_user: User):
        """Successful login returns access token and sets the session cookie."""
        response = await client.post(
            f"{AUTH_PREFIX}/login",
            json={"email": "test@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"

        payload = _decode_token(data["access_token"])
        assert payload["sub"] == str(test_user.id)
        assert payload["email"] == test_user.email

        assert "session" in response.cookies

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, test_user: User):
        response = await client.post(
            f"{AUTH_PREFIX}/login",
            json={"email": "test@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert "Incorrect email or password" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_login_nonexistent_email(self, client: AsyncClient, test_user: User):
        response = await client.post(
            f"{AUTH_PREFIX}/login",
            json={"email": "nobody@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_user(
        self, test_db: AsyncSession, client: AsyncClient, password_hash: str
    ):
        """Login with a disabled account returns 401."""
        test_db.add(User(**InactiveUserFactory(email="inactive@example.com"), hashed_password=password_hash))
        await test_db.commit()

        response = await client.post(
            f"{AUTH_PREFIX}/login",
            json={"email": "inactive@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# GET /auth/me, POST /auth/logout
# ---------------------------------------------------------------------------


class TestMe:
    """Tests for GET /auth/me."""

    @pytest.mark.asyncio
    async def test_me_lists_permissions(self, team_lead_client: AsyncClient):
        response = await team_lead_client.get(f"{AUTH_PREFIX}/me")
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["role"] == "team_lead"
        assert "approve_red_zone_resolution" in user["permissions"]
        assert "manage_red_zone_rules" not in user["permissions"]

    @pytest.mark.asyncio
    async def test_me_via_login_token(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get(f"{AUTH_PREFIX}/me")
        assert response.status_code == 200
        assert response.json()["user"]["email"] == "test@example.com"

    @pytest.mark.asyncio
    async def test_me_with_session_cookie(self, client: AsyncClient, test_user: User):
        login = await client.post(
            f"{AUTH_PREFIX}/login",
            json={"email": "test@example.com", "password": TEST_PASSWORD},
        )
        assert login.status_code == 200
        # Cookie jar carries the session; no Authorization header
        response = await client.get(f"{AUTH_PREFIX}/me")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_me_requires_auth(self, client: AsyncClient):
        response = await client.get(f"{AUTH_PREFIX}/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_invalid_token(self, client: AsyncClient):
        response = await client.get(f"{AUTH_PREFIX}/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout(self, client: AsyncClient):
        response = await client.post(f"{AUTH_PREFIX}/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Successfully logged out"
