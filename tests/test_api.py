"""HTTP facade tests."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from tests.fakes import long_comment, png_bytes, seed_feedback, seed_profile, seed_project


async def _sign_in(client: AsyncClient, fake, email="alice@example.com", username="alice") -> str:
    record = fake.auth.register(email, "secret123", username)
    response = await client.post("/auth/sign-in", json={"email": email, "password": "secret123"})
    assert response.status_code == 200
    return record["id"]


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Process-Time" in response.headers


@pytest.mark.asyncio
async def test_module_app_builds_services_lazily() -> None:
    from rumori.api.main import app

    assert app.state.services is None
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    assert response.status_code == 200
    assert app.state.services is None


class TestAuthRoutes:

    @pytest.mark.asyncio
    async def test_sign_in_and_state(self, client: AsyncClient, fake) -> None:
        user_id = await _sign_in(client, fake)

        response = await client.get("/auth/state")
        assert response.json() == {
            "state": "authenticated",
            "user_id": user_id,
            "email": "alice@example.com",
            "username": "alice",
        }

    @pytest.mark.asyncio
    async def test_bad_credentials(self, client: AsyncClient, fake) -> None:
        fake.auth.register("alice@example.com", "secret123", "alice")
        response = await client.post("/auth/sign-in", json={"email": "alice@example.com", "password": "nope"})
        assert response.status_code == 401
        assert response.json()["error_type"] == "invalid_credentials"

    @pytest.mark.asyncio
    async def test_sign_up_pending(self, client: AsyncClient, fake) -> None:
        fake.auth.auto_confirm = False
        response = await client.post("/auth/sign-up", json={
            "email": "new@example.com", "password": "secret123", "username": "newbie",
        })
        assert response.status_code == 201
        assert response.json()["state"] == "pending_verification"

    @pytest.mark.asyncio
    async def test_sign_up_existing_email(self, client: AsyncClient, fake) -> None:
        fake.auth.register("taken@example.com", "secret123", "taken")
        response = await client.post("/auth/sign-up", json={
            "email": "taken@example.com", "password": "secret123", "username": "other",
        })
        assert response.status_code == 409
        assert response.json()["error_type"] == "email_already_exists"

    @pytest.mark.asyncio
    async def test_invalid_email_is_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/auth/sign-in", json={"email": "not-an-email", "password": "x"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_profile_edit_and_sign_out(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)

        response = await client.patch("/auth/profile", json={"username": "alice2", "bio": "hi"})
        assert response.status_code == 200
        assert response.json()["username"] == "alice2"
        assert response.json()["bio"] == "hi"

        assert (await client.post("/auth/sign-out")).status_code == 204
        assert (await client.get("/auth/profile")).status_code == 401

    @pytest.mark.asyncio
    async def test_username_conflict(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        seed_profile(fake, "bob-id", "bob")

        response = await client.get("/auth/username-available", params={"username": "bob"})
        assert response.json() == {"username": "bob", "available": False}

        response = await client.patch("/auth/profile", json={"username": "bob"})
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_avatar_upload(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        response = await client.post(
            "/auth/profile/image", files={"image": ("me.png", png_bytes(), "image/png")}
        )
        assert response.status_code == 200
        assert "/avatars/" in response.json()["avatar_url"]


class TestProjectRoutes:

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, client: AsyncClient) -> None:
        response = await client.get("/projects")
        assert response.status_code == 401
        assert response.json()["error_type"] == "not_authenticated"

    @pytest.mark.asyncio
    async def test_upload_list_update_delete(self, client: AsyncClient, fake) -> None:
        user_id = await _sign_in(client, fake)

        response = await client.post(
            "/projects",
            data={"title": "Night Drive", "description": "demo"},
            files={
                "image": ("cover.png", png_bytes(), "image/png"),
                "audio": ("drive.mp3", b"ID3" + b"\x00" * 512, "audio/mpeg"),
            },
        )
        assert response.status_code == 201
        project = response.json()
        assert project["user_id"] == user_id
        assert project["status"] == "Active"

        listing = await client.get("/projects")
        assert [p["id"] for p in listing.json()] == [project["id"]]

        media = await client.get(f"/projects/{project['id']}/media")
        assert media.json()["file_type"] == "audio"
        assert media.json()["audio_url"].endswith(project["audio_path"])

        response = await client.patch(f"/projects/{project['id']}", json={"status": "archived"})
        assert response.json()["status"] == "Archived"

        assert (await client.delete(f"/projects/{project['id']}")).status_code == 204
        assert (await client.get(f"/projects/{project['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_upload_without_files(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        response = await client.post("/projects", data={"title": "Empty"})
        assert response.status_code == 400
        assert response.json()["error_type"] == "validation"

    @pytest.mark.asyncio
    async def test_review_list_and_foreign_update(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        theirs = seed_project(fake, "bob-id", "Bob's")

        response = await client.get("/projects/review")
        assert [p["title"] for p in response.json()] == ["Bob's"]

        response = await client.patch(f"/projects/{theirs['id']}", json={"title": "Mine"})
        assert response.status_code == 403


class TestFeedbackAndCoinRoutes:

    @pytest.mark.asyncio
    async def test_review_flow(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        project = seed_project(fake, "bob-id", "Bob's")

        response = await client.post("/feedback", json={"project_id": project["id"], "comment": long_comment()})
        assert response.status_code == 201
        feedback_id = response.json()["id"]

        assert (await client.get("/coins/balance")).json() == {"balance": 1}

        response = await client.put(f"/feedback/{feedback_id}/rating", json={"rating": 1})
        assert response.json()["helpful_rating"] == 1

        mine = await client.get("/feedback/mine")
        assert [f["id"] for f in mine.json()] == [feedback_id]

    @pytest.mark.asyncio
    async def test_short_comment(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        project = seed_project(fake, "bob-id")
        response = await client.post("/feedback", json={"project_id": project["id"], "comment": "nice"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unread_and_seen(self, client: AsyncClient, fake) -> None:
        user_id = await _sign_in(client, fake)
        project = seed_project(fake, user_id)
        seed_profile(fake, "bob-id", "bob")
        seed_feedback(fake, project["id"], "bob-id")

        assert (await client.get("/feedback/unread-count")).json() == {"unread": 1}

        listing = await client.get(f"/feedback/project/{project['id']}")
        assert listing.json()[0]["author_name"] == "bob"

        response = await client.post(f"/feedback/project/{project['id']}/seen")
        assert response.json() == {"marked": 1, "unread": 0}

    @pytest.mark.asyncio
    async def test_insufficient_balance_is_402(self, client: AsyncClient, fake) -> None:
        user_id = await _sign_in(client, fake)
        fake.seed("user_coins", user_id=user_id, balance=1)

        response = await client.post("/coins/spend", json={
            "amount": 3, "project_id": "p1", "description": "Requested feedback",
        })
        assert response.status_code == 402
        assert response.json() == {"detail": "Not enough coins", "error_type": "insufficient_balance"}

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        response = await client.post("/coins/earn", json={
            "amount": 0, "project_id": "p1", "description": "x",
        })
        assert response.status_code == 422


class TestFavoritesNotificationsStats:

    @pytest.mark.asyncio
    async def test_favorite_toggle(self, client: AsyncClient, fake) -> None:
        await _sign_in(client, fake)
        project = seed_project(fake, "bob-id")

        response = await client.post(f"/favorites/{project['id']}/toggle")
        assert response.json() == {"project_id": project["id"], "favorited": True}
        assert len((await client.get("/favorites")).json()) == 1

        response = await client.post(f"/favorites/{project['id']}/toggle")
        assert response.json()["favorited"] is False
        assert (await client.get(f"/favorites/{project['id']}")).json()["favorited"] is False

    @pytest.mark.asyncio
    async def test_notifications_and_stats(self, client: AsyncClient, fake) -> None:
        user_id = await _sign_in(client, fake)
        project = seed_project(fake, user_id, "Mine", minutes=0)
        seed_profile(fake, "bob-id", "bob")
        seed_feedback(fake, project["id"], "bob-id", minutes=5)

        items = (await client.get("/notifications")).json()
        assert [i["action"] for i in items] == ["just reviewed", "uploaded"]

        stats = (await client.get("/stats")).json()
        assert stats == {"project_count": 1, "reviewed_count": 0, "helpful_percentage": None}
