"""
Integration tests for profile endpoints.
"""
import pytest
from httpx import AsyncClient

from tests.factories import TEST_PASSWORD, auth_headers, create_media


@pytest.mark.integration
@pytest.mark.asyncio
class TestProfile:
    async def test_update_name(self, client: AsyncClient, alice):
        response = await client.put("/api/v1/users/me", headers=auth_headers(alice), json={"name": "  Alicia "})

        assert response.status_code == 200
        assert response.json()["name"] == "Alicia"

    async def test_blank_name_rejected(self, client: AsyncClient, alice):
        response = await client.put("/api/v1/users/me", headers=auth_headers(alice), json={"name": "   "})
        assert response.status_code == 400

    async def test_change_password(self, client: AsyncClient, alice):
        response = await client.put(
            "/api/v1/users/me/password",
            headers=auth_headers(alice),
            json={"current_password": TEST_PASSWORD, "new_password": "N3w!Passw0rd"},
        )
        assert response.status_code == 200

        old = await client.post("/api/v1/auth/login", json={"email": alice.email, "password": TEST_PASSWORD})
        new = await client.post("/api/v1/auth/login", json={"email": alice.email, "password": "N3w!Passw0rd"})
        assert old.status_code == 401
        assert new.status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, alice):
        response = await client.put(
            "/api/v1/users/me/password",
            headers=auth_headers(alice),
            json={"current_password": "Wrong123!@#", "new_password": "N3w!Passw0rd"},
        )
        assert response.status_code == 400

    async def test_change_password_weak(self, client: AsyncClient, alice):
        response = await client.put(
            "/api/v1/users/me/password",
            headers=auth_headers(alice),
            json={"current_password": TEST_PASSWORD, "new_password": "short"},
        )
        assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.asyncio
class TestProfileImage:
    async def test_replace_profile_image(self, client: AsyncClient, alice, media_store):
        first = await client.post(
            "/api/v1/users/me/profile-image",
            headers=auth_headers(alice),
            files={"file": ("me.png", b"\x89PNG first", "image/png")},
        )
        second = await client.post(
            "/api/v1/users/me/profile-image",
            headers=auth_headers(alice),
            files={"file": ("me.webp", b"RIFF second", "image/webp")},
        )

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["profile_image"].endswith(".webp")
        stored = list((media_store.root / "profiles" / str(alice.id)).iterdir())
        assert [p.suffix for p in stored] == [".webp"]

    async def test_rejects_non_image(self, client: AsyncClient, alice):
        response = await client.post(
            "/api/v1/users/me/profile-image",
            headers=auth_headers(alice),
            files={"file": ("me.gif", b"GIF89a", "image/gif")},
        )
        assert response.status_code == 400

    async def test_delete_restores_default_avatar(self, client: AsyncClient, alice, media_store):
        await client.post(
            "/api/v1/users/me/profile-image",
            headers=auth_headers(alice),
            files={"file": ("me.png", b"\x89PNG", "image/png")},
        )

        response = await client.delete("/api/v1/users/me/profile-image", headers=auth_headers(alice))

        assert response.status_code == 200
        assert response.json()["profile_image"].endswith("seed=Alice")
        assert list((media_store.root / "profiles" / str(alice.id)).iterdir()) == []


@pytest.mark.integration
@pytest.mark.asyncio
class TestUserStats:
    async def test_stats(self, client: AsyncClient, db_session, alice, bob, private_event, public_event):
        await create_media(db_session, public_event, alice)

        response = await client.get(f"/api/v1/users/{alice.id}/stats", headers=auth_headers(bob))

        assert response.status_code == 200
        assert response.json() == {"user_id": str(alice.id), "uploads": 1, "events_created": 2}

    async def test_stats_refresh_after_event_created(self, client: AsyncClient, alice):
        url = f"/api/v1/users/{alice.id}/stats"
        before = await client.get(url, headers=auth_headers(alice))
        await client.post(
            "/api/v1/events", headers=auth_headers(alice), json={"name": "New", "date": "2026-12-24"}
        )
        after = await client.get(url, headers=auth_headers(alice))

        assert before.json()["events_created"] == 0
        assert after.json()["events_created"] == 1

    async def test_unknown_user(self, client: AsyncClient, alice):
        response = await client.get(
            "/api/v1/users/00000000-0000-4000-8000-000000000000/stats", headers=auth_headers(alice)
        )
        assert response.status_code == 404
