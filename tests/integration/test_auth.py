"""
Integration tests for authentication endpoints.
Tests register, login, refresh, logout and email verification with a real database.
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient

from eventshare.core.security import create_refresh_token, utcnow
from eventshare.db.repositories import users as user_repo
from tests.factories import TEST_PASSWORD, auth_headers, create_user


@pytest.mark.integration
@pytest.mark.asyncio
class TestAuthEndpoints:
    """Test authentication API endpoints."""

    async def test_register_success(self, client: AsyncClient, email_outbox):
        """Registration returns tokens, sets the cookie and emails a code."""
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "NewUser@Example.com", "password": TEST_PASSWORD, "name": "New User"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "newuser@example.com"
        assert data["user"]["name"] == "New User"
        assert data["user"]["is_email_verified"] is False
        assert data["user"]["profile_image"].endswith("seed=NewUser")
        assert "hashed_password" not in data["user"]
        assert data["token_type"] == "bearer"
        assert response.headers["set-cookie"].startswith("token=")
        assert email_outbox.last_code_for("newuser@example.com") is not None

    async def test_register_survives_email_outage(self, client: AsyncClient, email_outbox):
        email_outbox.fail = True
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "quiet@example.com", "password": TEST_PASSWORD, "name": "Quiet"},
        )
        assert response.status_code == 201

    async def test_register_weak_password(self, client: AsyncClient):
        """Test registration with weak password fails."""
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "user@example.com", "password": "weak", "name": "Test User"},
        )

        assert response.status_code == 400
        assert "password" in response.json()["detail"].lower()

    async def test_register_duplicate_email(self, client: AsyncClient, alice):
        """Test registration with existing email fails."""
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "ALICE@example.com", "password": TEST_PASSWORD, "name": "Duplicate"},
        )

        assert response.status_code == 409
        assert "already registered" in response.json()["detail"].lower()

    async def test_register_invalid_email(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": "not-an-email", "password": TEST_PASSWORD, "name": "Test User"},
        )

        assert response.status_code == 422  # Validation error

    async def test_login_success(self, client: AsyncClient, alice):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": alice.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["user"]["id"] == str(alice.id)
        assert response.headers["set-cookie"].startswith("token=")

    async def test_login_wrong_password(self, client: AsyncClient, alice):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": alice.email, "password": "WrongPassword123!@#"},
        )

        assert response.status_code == 401
        assert "incorrect" in response.json()["detail"].lower()

    async def test_login_nonexistent_user(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nonexistent@example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 401

    async def test_refresh_token_success(self, client: AsyncClient, alice):
        """Test refreshing access token with valid refresh token."""
        login_response = await client.post(
            "/api/v1/auth/login",
            json={"email": alice.email, "password": TEST_PASSWORD},
        )
        refresh_token = login_response.json()["refresh_token"]

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"

    async def test_refresh_token_invalid(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": "invalid.token.here"})
        assert response.status_code == 401

    async def test_refresh_with_access_token_fails(self, client: AsyncClient, alice):
        """An access token is not accepted where a refresh token is expected."""
        access_token = auth_headers(alice)["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401

    async def test_refresh_for_unknown_user_fails(self, client: AsyncClient, db_session):
        token = create_refresh_token({"sub": "00000000-0000-4000-8000-000000000000"})
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert response.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient, alice):
        headers = auth_headers(alice)

        response = await client.post("/api/v1/auth/logout", headers=headers)
        assert response.status_code == 204

        response = await client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401
        assert "revoked" in response.json()["detail"].lower()

    async def test_logout_without_token(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 401


@pytest.mark.integration
@pytest.mark.asyncio
class TestEmailVerification:
    async def _register(self, client: AsyncClient, email="verify@example.com"):
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": TEST_PASSWORD, "name": "Verifier"},
        )
        assert response.status_code == 201
        return response.json()["user"]

    async def test_verify_with_emailed_code(self, client: AsyncClient, email_outbox):
        await self._register(client)
        code = email_outbox.last_code_for("verify@example.com")

        response = await client.post("/api/v1/auth/verify-email", json={"email": "verify@example.com", "code": code})

        assert response.status_code == 200
        assert response.json()["is_email_verified"] is True
        assert email_outbox.sent[-1]["template"] == "welcome"

        again = await client.post("/api/v1/auth/verify-email", json={"email": "verify@example.com", "code": code})
        assert again.status_code == 409

    async def test_wrong_code_rejected(self, client: AsyncClient, email_outbox):
        await self._register(client)
        code = email_outbox.last_code_for("verify@example.com")
        wrong = "000000" if code != "000000" else "111111"

        response = await client.post("/api/v1/auth/verify-email", json={"email": "verify@example.com", "code": wrong})

        assert response.status_code == 400

    async def test_expired_code_rejected(self, client: AsyncClient, db_session, email_outbox):
        await self._register(client)
        code = email_outbox.last_code_for("verify@example.com")
        user = await user_repo.get_user_by_email(db_session, "verify@example.com")
        await user_repo.update_user(db_session, user, verification_code_expires_at=utcnow() - timedelta(minutes=1))

        response = await client.post("/api/v1/auth/verify-email", json={"email": "verify@example.com", "code": code})

        assert response.status_code == 400
        assert "expired" in response.json()["detail"].lower()

    async def test_unknown_email(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/verify-email", json={"email": "nobody@example.com", "code": "123456"})
        assert response.status_code == 404

    async def test_resend_within_cooldown_is_throttled(self, client: AsyncClient):
        await self._register(client)

        response = await client.post("/api/v1/auth/resend-verification", json={"email": "verify@example.com"})

        assert response.status_code == 429

    async def test_resend_after_cooldown(self, client: AsyncClient, db_session, email_outbox):
        await self._register(client)
        first_code = email_outbox.last_code_for("verify@example.com")
        user = await user_repo.get_user_by_email(db_session, "verify@example.com")
        await user_repo.update_user(db_session, user, verification_code_sent_at=utcnow() - timedelta(hours=1))

        response = await client.post("/api/v1/auth/resend-verification", json={"email": "verify@example.com"})

        assert response.status_code == 200
        assert len([m for m in email_outbox.sent if m["template"] == "verification_code"]) == 2
        new_code = email_outbox.last_code_for("verify@example.com")
        assert new_code is not None
        if new_code != first_code:
            stale = await client.post(
                "/api/v1/auth/verify-email", json={"email": "verify@example.com", "code": first_code}
            )
            assert stale.status_code == 400

    async def test_resend_email_failure_is_unavailable(self, client: AsyncClient, db_session, email_outbox):
        await self._register(client)
        user = await user_repo.get_user_by_email(db_session, "verify@example.com")
        await user_repo.update_user(db_session, user, verification_code_sent_at=None)
        email_outbox.fail = True

        response = await client.post("/api/v1/auth/resend-verification", json={"email": "verify@example.com"})

        assert response.status_code == 503
        await db_session.refresh(user)
        assert user.verification_code_sent_at is None

    async def test_resend_for_verified_user_conflicts(self, client: AsyncClient, alice):
        response = await client.post("/api/v1/auth/resend-verification", json={"email": alice.email})
        assert response.status_code == 409


@pytest.mark.integration
@pytest.mark.asyncio
class TestProtectedEndpoints:
    """Test accessing protected endpoints with authentication."""

    async def test_me_with_valid_token(self, client: AsyncClient, alice):
        response = await client.get("/api/v1/auth/me", headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json()["email"] == alice.email

    async def test_me_with_cookie(self, client: AsyncClient, alice):
        login = await client.post("/api/v1/auth/login", json={"email": alice.email, "password": TEST_PASSWORD})
        client.cookies.clear()
        client.cookies.set("token", login.json()["access_token"])

        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["id"] == str(alice.id)

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_me_with_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer invalid.token.here"})
        assert response.status_code == 401

    async def test_refresh_token_cannot_authenticate(self, client: AsyncClient, alice):
        token = create_refresh_token({"sub": str(alice.id)})
        response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_token_for_deleted_user(self, client: AsyncClient, db_session):
        ghost = await create_user(db_session, "Ghost", "ghost@example.com")
        headers = auth_headers(ghost)
        await db_session.delete(ghost)
        await db_session.commit()

        response = await client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 401
