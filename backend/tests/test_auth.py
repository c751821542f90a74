"""
Tests for authentication endpoints and the current-user dependency.

Tests validate:
- Registration, login and token refresh payloads
- The httpOnly auth cookie
- Bearer and cookie token resolution
- Rejection of missing, invalid and disabled credentials
"""

from pydantic import SecretStr

from projecthub.api.v1.auth import create_access_token, create_refresh_token
from projecthub.models.enums import UserStatus

REGISTRATION = {
    "email": "Ada@Example.com",
    "password": "correct-horse",
    "firstName": "Ada",
    "lastName": "Lovelace",
}


class TestRegister:
    """Tests for POST /api/auth/register and its /signup alias."""

    async def test_register_creates_developer(self, client):
        """New accounts get the Developer role and a lowercased email."""
        response = await client.post("/api/auth/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        user = body["data"]["user"]
        assert user["email"] == "ada@example.com"
        assert user["role"] == "Developer"
        assert user["status"] == "Active"
        assert body["data"]["token"]
        assert body["data"]["refreshToken"]
        assert "passwordHash" not in user

    async def test_register_sets_httponly_cookie(self, client):
        response = await client.post("/api/auth/register", json=REGISTRATION)

        cookie = response.headers.get("set-cookie", "")
        assert cookie.startswith("authToken=")
        assert "HttpOnly" in cookie

    async def test_signup_alias(self, client):
        response = await client.post("/api/auth/signup", json=REGISTRATION)
        assert response.status_code == 201

    async def test_duplicate_email_conflicts(self, client):
        """Email uniqueness ignores case."""
        await client.post("/api/auth/register", json=REGISTRATION)
        response = await client.post(
            "/api/auth/register", json={**REGISTRATION, "email": "ADA@example.com"}
        )

        assert response.status_code == 409
        assert response.json()["error"] == "A user with this email already exists"

    async def test_short_password_rejected(self, client):
        response = await client.post(
            "/api/auth/register", json={**REGISTRATION, "password": "short"}
        )

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "password"


class TestLogin:
    """Tests for POST /api/auth/login."""

    async def test_login_success(self, client, developer, password):
        response = await client.post(
            "/api/auth/login", json={"email": developer.email, "password": password}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == str(developer.id)
        assert data["user"]["lastLoginAt"] is not None
        assert data["expiresIn"] == 3600

    async def test_wrong_password(self, client, developer):
        response = await client.post(
            "/api/auth/login", json={"email": developer.email, "password": "nope-nope"}
        )

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Invalid email or password",
            "message": "Invalid email or password",
            "data": None,
        }

    async def test_unknown_email(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "ghost@example.com", "password": "whatever"}
        )
        assert response.status_code == 401

    async def test_inactive_user_forbidden(self, client, make_user, password):
        user = await make_user(status=UserStatus.INACTIVE)
        response = await client.post(
            "/api/auth/login", json={"email": user.email, "password": password}
        )
        assert response.status_code == 403


class TestRefreshAndLogout:
    """Tests for POST /api/auth/refresh-token and /logout."""

    async def test_refresh_from_body(self, client, developer, settings):
        token = create_refresh_token(developer.id, settings)
        response = await client.post("/api/auth/refresh-token", json={"refreshToken": token})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == str(developer.id)

    async def test_refresh_from_bearer_header(self, client, developer, settings):
        token = create_refresh_token(developer.id, settings)
        response = await client.post(
            "/api/auth/refresh-token", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200

    async def test_access_token_is_not_a_refresh_token(self, client, developer, settings):
        token = create_access_token(developer.id, settings)
        response = await client.post("/api/auth/refresh-token", json={"refreshToken": token})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"

    async def test_refresh_requires_token(self, client):
        response = await client.post("/api/auth/refresh-token")
        assert response.status_code == 401

    async def test_logout_clears_cookie(self, client):
        response = await client.post("/api/auth/logout")

        assert response.status_code == 200
        cookie = response.headers.get("set-cookie", "")
        assert cookie.startswith("authToken=")
        assert "Max-Age=0" in cookie


class TestCurrentUser:
    """Tests for GET /api/auth/me and token resolution."""

    async def test_me_with_bearer(self, client, developer, dev_headers):
        response = await client.get("/api/auth/me", headers=dev_headers)

        assert response.status_code == 200
        assert response.json()["data"]["email"] == developer.email

    async def test_me_with_cookie(self, client, developer, settings):
        client.cookies.set("authToken", create_access_token(developer.id, settings))
        response = await client.get("/api/auth/me")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == str(developer.id)

    async def test_missing_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Not authenticated"

    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    async def test_token_signed_with_other_secret(self, client, developer, settings):
        forged = settings.model_copy(update={"jwt_secret_key": SecretStr("another-secret")})
        token = create_access_token(developer.id, forged)
        response = await client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_disabled_user_forbidden(self, client, make_user, auth_headers):
        user = await make_user(status=UserStatus.INACTIVE)
        response = await client.get("/api/auth/me", headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["error"] == "User account is disabled"
