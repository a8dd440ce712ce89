"""Integration tests for Authentication API endpoints.

Tests the full request/response cycle for /api/auth/ endpoints.
"""

import pytest
from httpx import AsyncClient


async def _register(client: AsyncClient, username="alice", email="alice@example.com", password="filament!"):
    return await client.post(
        "/api/auth/register",
        json={"username": username, "email": email, "password": password},
    )


class TestRegisterAPI:
    """Integration tests for /api/auth/register."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_register_returns_token_and_user(self, async_client: AsyncClient):
        response = await _register(async_client)

        assert response.status_code == 201
        result = response.json()
        assert result["token"]
        assert result["user"]["username"] == "alice"
        assert result["user"]["email"] == "alice@example.com"
        assert "password" not in str(result["user"])

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_register_seeds_default_brands(self, async_client: AsyncClient):
        token = (await _register(async_client)).json()["token"]

        response = await async_client.get("/api/brands", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == sorted(["Prusament", "Hatchbox", "eSUN", "Polymaker", "Overture"])

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_duplicate_username_rejected(self, async_client: AsyncClient):
        await _register(async_client)

        response = await _register(async_client, email="other@example.com")

        assert response.status_code == 400
        assert response.json() == {"error": "InvalidInput", "detail": "Username or email already exists"}

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_duplicate_email_rejected(self, async_client: AsyncClient):
        await _register(async_client)

        response = await _register(async_client, username="bob")

        assert response.status_code == 400

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_missing_fields_rejected(self, async_client: AsyncClient):
        response = await async_client.post("/api/auth/register", json={"username": "alice"})

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_blank_username_rejected(self, async_client: AsyncClient):
        response = await _register(async_client, username="   ")

        assert response.status_code == 400


class TestLoginAPI:
    """Integration tests for /api/auth/login."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_login_with_username(self, async_client: AsyncClient):
        await _register(async_client)

        response = await async_client.post("/api/auth/login", json={"username": "alice", "password": "filament!"})

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_login_with_email(self, async_client: AsyncClient):
        await _register(async_client)

        response = await async_client.post(
            "/api/auth/login", json={"username": "alice@example.com", "password": "filament!"}
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_bad_password(self, async_client: AsyncClient):
        await _register(async_client)

        response = await async_client.post("/api/auth/login", json={"username": "alice", "password": "nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "detail": "Invalid credentials"}
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_token_works_for_me(self, async_client: AsyncClient):
        await _register(async_client)
        login = await async_client.post("/api/auth/login", json={"username": "alice", "password": "filament!"})

        response = await async_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {login.json()['token']}"}
        )

        assert response.status_code == 200
        assert response.json()["username"] == "alice"


class TestAuthGate:
    """Protected routes reject requests without a valid token."""

    @pytest.mark.asyncio
    @pytest.mark.integration
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/spools"),
            ("POST", "/api/spools"),
            ("PUT", "/api/spools/1"),
            ("DELETE", "/api/spools/1"),
            ("GET", "/api/brands"),
            ("GET", "/api/prints"),
            ("POST", "/api/prints"),
            ("DELETE", "/api/prints/1"),
            ("GET", "/api/stats"),
            ("GET", "/api/auth/me"),
        ],
    )
    async def test_missing_token(self, async_client: AsyncClient, method, path):
        response = await async_client.request(method, path)

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_invalid_token(self, async_client: AsyncClient):
        response = await async_client.get("/api/spools", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "detail": "Invalid or expired token"}

    @pytest.mark.asyncio
    @pytest.mark.integration
    async def test_health_is_public(self, async_client: AsyncClient):
        response = await async_client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
