"""
Integration tests for the auth endpoints.
"""

import pytest

from tests.conftest import bearer, register_user

pytestmark = pytest.mark.asyncio


class TestRegister:

    async def test_register_returns_token_and_user(self, client, sample_user_data):
        response = await client.post("/api/auth/register", json=sample_user_data)

        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["user"]["username"] == "ada"
        assert data["user"]["email"] == "ada@example.com"
        assert data["user"]["firstName"] == "Ada"
        assert data["user"]["isActive"] is True
        assert "password" not in data["user"]
        assert "hashedPassword" not in data["user"]

    async def test_register_normalizes_input(self, client):
        response = await client.post("/api/auth/register", json={
            "username": "  grace  ",
            "email": "Grace@Example.COM",
            "password": "secret1",
        })

        assert response.status_code == 201
        user = response.json()["user"]
        assert user["username"] == "grace"
        assert user["email"] == "grace@example.com"

    async def test_duplicate_email_conflicts(self, client):
        await register_user(client)

        response = await client.post("/api/auth/register", json={
            "username": "someone-else",
            "email": "ada@example.com",
            "password": "secret1",
        })

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_duplicate_username_conflicts(self, client):
        await register_user(client)

        response = await client.post("/api/auth/register", json={
            "username": "ada",
            "email": "other@example.com",
            "password": "secret1",
        })

        assert response.status_code == 409

    @pytest.mark.parametrize("payload, field", [
        ({"username": "ab", "email": "x@example.com", "password": "secret1"}, "username"),
        ({"username": "abc", "email": "not-an-email", "password": "secret1"}, "email"),
        ({"username": "abc", "email": "x@example.com", "password": "12345"}, "password"),
    ])
    async def test_invalid_registration_is_rejected(self, client, payload, field):
        response = await client.post("/api/auth/register", json=payload)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert field in [error["field"] for error in data["errors"]]


class TestLogin:

    async def test_login_returns_token(self, client, sample_user_data):
        await client.post("/api/auth/register", json=sample_user_data)

        response = await client.post("/api/auth/login", json={
            "email": "ADA@example.com",
            "password": sample_user_data["password"],
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token"]
        assert data["user"]["lastLogin"] is not None

        me = await client.get("/api/auth/user", headers=bearer(data["token"]))
        assert me.status_code == 200
        assert me.json()["user"]["username"] == "ada"

    async def test_wrong_password_is_unauthorized(self, client):
        await register_user(client)

        response = await client.post("/api/auth/login", json={
            "email": "ada@example.com",
            "password": "wrong-password",
        })

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"
        assert response.headers["www-authenticate"] == "Bearer"

    async def test_unknown_email_is_unauthorized(self, client):
        response = await client.post("/api/auth/login", json={
            "email": "nobody@example.com",
            "password": "whatever",
        })

        assert response.status_code == 401


class TestCurrentUser:

    async def test_requires_token(self, client):
        response = await client.get("/api/auth/user")

        assert response.status_code == 401
        assert response.json()["code"] == "AUTH_ERROR"

    async def test_rejects_garbage_token(self, client):
        response = await client.get("/api/auth/user", headers=bearer("not-a-jwt"))

        assert response.status_code == 401

    async def test_logout(self, client, auth_headers):
        response = await client.post("/api/auth/logout", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"

    async def test_refresh_returns_usable_token(self, client, auth_headers):
        response = await client.post("/api/auth/refresh", headers=auth_headers)

        assert response.status_code == 200
        token = response.json()["token"]
        me = await client.get("/api/auth/user", headers=bearer(token))
        assert me.status_code == 200


class TestPasswordChange:

    async def test_change_password(self, client, auth_headers):
        response = await client.post("/api/auth/password", headers=auth_headers, json={
            "currentPassword": "correct-horse",
            "newPassword": "battery-staple",
        })

        assert response.status_code == 200

        old = await client.post("/api/auth/login", json={
            "email": "ada@example.com", "password": "correct-horse",
        })
        new = await client.post("/api/auth/login", json={
            "email": "ada@example.com", "password": "battery-staple",
        })
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_wrong_current_password_is_not_401(self, client, auth_headers):
        response = await client.post("/api/auth/password", headers=auth_headers, json={
            "currentPassword": "nope",
            "newPassword": "battery-staple",
        })

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "currentPassword"

    async def test_short_new_password_is_rejected(self, client, auth_headers):
        response = await client.post("/api/auth/password", headers=auth_headers, json={
            "currentPassword": "correct-horse",
            "newPassword": "123",
        })

        assert response.status_code == 400


class TestProfileUpdate:

    async def test_partial_update(self, client, auth_headers):
        response = await client.post("/api/auth/profile", headers=auth_headers, json={
            "firstName": "Augusta",
        })

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["firstName"] == "Augusta"
        assert user["username"] == "ada"

    async def test_taken_username_conflicts(self, client, auth_headers):
        await register_user(client, username="grace", email="grace@example.com")

        response = await client.post("/api/auth/profile", headers=auth_headers, json={
            "username": "grace",
        })

        assert response.status_code == 409

    async def test_keeping_own_email_is_allowed(self, client, auth_headers):
        response = await client.post("/api/auth/profile", headers=auth_headers, json={
            "email": "ada@example.com",
            "lastName": "King",
        })

        assert response.status_code == 200
        assert response.json()["user"]["lastName"] == "King"
