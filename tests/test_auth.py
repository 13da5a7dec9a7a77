"""
Authentication and account endpoint tests.
Covers: register, login, refresh, logout, email verification, password
reset, profile updates and account deletion.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core.security import hash_token
from nexushub.crud.user import crud_user
from nexushub.services.auth_service import auth_service

pytestmark = pytest.mark.asyncio


async def _register_and_login(
    client: AsyncClient, email: str, username: str, password: str = "TestPass1"
) -> tuple[dict[str, str], str]:
    await client.post(
        "/api/v1/auth/register",
        json={"email": email, "username": username, "password": password},
    )
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": email, "password": password},
    )
    headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
    me = await client.get("/api/v1/users/me", headers=headers)
    return headers, me.json()["id"]


async def _create_project(client: AsyncClient, headers: dict) -> dict[str, Any]:
    resp = await client.post("/api/v1/projects/", json={"title": "Board"}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _add_to_roster(
    client: AsyncClient, headers: dict, project_id: str, user_id: str, role: str = "member"
) -> None:
    resp = await client.post(
        f"/api/v1/projects/{project_id}/members",
        json={"user_id": user_id, "role": role},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text


class TestRegister:
    async def test_register_success(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "NewUser@Example.com",
                "username": "newuser",
                "password": "NewPass1",
                "full_name": "New User",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["username"] == "newuser"
        assert data["is_email_verified"] is False
        assert "hashed_password" not in data
        assert "id" in data

    async def test_register_stores_verification_hash(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await crud_user.get_by_email(db, "testuser@example.com")
        assert user is not None
        assert user.verification_token_hash is not None
        assert len(user.verification_token_hash) == 64

    async def test_register_duplicate_email(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "testuser@example.com",
                "username": "differentuser",
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409
        assert response.json()["success"] is False

    async def test_register_duplicate_username(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "different@example.com",
                "username": "testuser",
                "password": "TestPass1",
            },
        )
        assert response.status_code == 409

    async def test_register_weak_password(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "weak@example.com",
                "username": "weakuser",
                "password": "short",
            },
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_register_invalid_email(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "email": "not-an-email",
                "username": "someuser",
                "password": "ValidPass1",
            },
        )
        assert response.status_code == 400


class TestLogin:
    async def test_login_success(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "TestPass1"},
        )
        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"

    async def test_login_wrong_password(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "WrongPass1"},
        )
        assert response.status_code == 401

    async def test_login_nonexistent_user(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": "TestPass1"},
        )
        assert response.status_code == 401


class TestRefresh:
    async def test_refresh_success(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        login_resp = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "TestPass1"},
        )
        refresh_token = login_resp.json()["refresh_token"]

        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": refresh_token},
        )
        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data

    async def test_refresh_invalid_token(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": "this.is.invalid"},
        )
        assert response.status_code == 401

    async def test_refresh_after_logout_rejected(
        self, client: AsyncClient, registered_user: dict
    ) -> None:
        login_resp = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "TestPass1"},
        )
        tokens = login_resp.json()
        headers = {"Authorization": f"Bearer {tokens['access_token']}"}
        assert (await client.post("/api/v1/auth/logout", headers=headers)).status_code == 204

        response = await client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": tokens["refresh_token"]},
        )
        assert response.status_code == 401


class TestLogout:
    async def test_logout_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post("/api/v1/auth/logout", headers=auth_headers)
        assert response.status_code == 204

    async def test_logout_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/logout")
        assert response.status_code == 401


class TestEmailVerification:
    async def test_verify_email_with_stored_token(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await crud_user.get_by_email(db, "testuser@example.com")
        assert user is not None
        user.verification_token_hash = hash_token("known-verification-token")
        await db.flush()

        response = await client.get("/api/v1/auth/verify-email/known-verification-token")
        assert response.status_code == 200

        again = await client.get("/api/v1/auth/verify-email/known-verification-token")
        assert again.status_code == 401

    async def test_verify_email_unknown_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/verify-email/not-a-token")
        assert response.status_code == 401


class TestPasswordReset:
    async def test_forgot_password_unknown_email_still_ok(
        self, client: AsyncClient
    ) -> None:
        response = await client.post(
            "/api/v1/auth/forgot-password", json={"email": "ghost@example.com"}
        )
        assert response.status_code == 200

    async def test_forgot_password_stores_reset_hash(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/auth/forgot-password", json={"email": "testuser@example.com"}
        )
        assert response.status_code == 200
        user = await crud_user.get_by_email(db, "testuser@example.com")
        assert user is not None
        assert user.reset_token_hash is not None
        assert user.reset_token_expires_at is not None

    async def test_reset_password_with_stored_token(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await crud_user.get_by_email(db, "testuser@example.com")
        assert user is not None
        user.reset_token_hash = hash_token("known-reset-token")
        user.reset_token_expires_at = datetime.now(timezone.utc) + timedelta(minutes=5)
        await db.flush()

        response = await client.post(
            "/api/v1/auth/reset-password/known-reset-token",
            json={"password": "BrandNew1"},
        )
        assert response.status_code == 200

        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "BrandNew1"},
        )
        assert login.status_code == 200

    async def test_reset_password_expired_token(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await crud_user.get_by_email(db, "testuser@example.com")
        assert user is not None
        user.reset_token_hash = hash_token("expired-reset-token")
        user.reset_token_expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        await db.flush()

        response = await client.post(
            "/api/v1/auth/reset-password/expired-reset-token",
            json={"password": "BrandNew1"},
        )
        assert response.status_code == 401


class TestProfile:
    async def test_get_me_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        response = await client.get("/api/v1/users/me", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == registered_user["email"]

    async def test_get_me_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401

    async def test_update_me(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.put(
            "/api/v1/users/me",
            json={"full_name": "Renamed", "bio": "Works on the backend"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["full_name"] == "Renamed"
        assert response.json()["bio"] == "Works on the backend"

    async def test_change_password_wrong_current(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/users/me/password",
            json={"current_password": "WrongPass1", "new_password": "Another1Pass"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_change_password_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.put(
            "/api/v1/users/me/password",
            json={"current_password": "TestPass1", "new_password": "Another1Pass"},
            headers=auth_headers,
        )
        assert response.status_code == 204
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "Another1Pass"},
        )
        assert login.status_code == 200


class TestDeleteAccount:
    async def test_delete_requires_password(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.request(
            "DELETE",
            "/api/v1/users/me",
            json={"password": "WrongPass1"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_delete_account(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.request(
            "DELETE",
            "/api/v1/users/me",
            json={"password": "TestPass1"},
            headers=auth_headers,
        )
        assert response.status_code == 204

        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "testuser@example.com", "password": "TestPass1"},
        )
        assert login.status_code == 401

    async def test_solo_project_deleted_with_account(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        other_headers, _ = await _register_and_login(client, "o@example.com", "other1")
        response = await client.request(
            "DELETE", "/api/v1/users/me", json={"password": "TestPass1"}, headers=auth_headers
        )
        assert response.status_code == 204

        fetched = await client.get(f"/api/v1/projects/{project['id']}", headers=other_headers)
        assert fetched.status_code == 404

    async def test_sole_owner_of_shared_project_refused(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        member_headers, member_id = await _register_and_login(client, "m@example.com", "member1")
        await _add_to_roster(client, auth_headers, project["id"], member_id)

        response = await client.request(
            "DELETE", "/api/v1/users/me", json={"password": "TestPass1"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert "only owner" in response.json()["message"]

        fetched = await client.get(f"/api/v1/projects/{project['id']}", headers=member_headers)
        assert "owner" in {m["role"] for m in fetched.json()["members"]}

    async def test_project_never_left_without_owner(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        # A creates the project, makes B an owner and leaves; B then deletes their account.
        project = await _create_project(client, auth_headers)
        b_headers, b_id = await _register_and_login(client, "b@example.com", "bowner")
        await _add_to_roster(client, auth_headers, project["id"], b_id, role="owner")
        left = await client.delete(
            f"/api/v1/projects/{project['id']}/members/{registered_user['id']}",
            headers=auth_headers,
        )
        assert left.status_code == 200

        response = await client.request(
            "DELETE", "/api/v1/users/me", json={"password": "TestPass1"}, headers=b_headers
        )
        assert response.status_code == 204

        # B held the project alone, so it went with the account
        fetched = await client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers)
        assert fetched.status_code == 404

    async def test_co_owned_project_survives_creator(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        co_headers, co_id = await _register_and_login(client, "c@example.com", "coowner")
        await _add_to_roster(client, auth_headers, project["id"], co_id, role="owner")

        response = await client.request(
            "DELETE", "/api/v1/users/me", json={"password": "TestPass1"}, headers=auth_headers
        )
        assert response.status_code == 204

        fetched = await client.get(f"/api/v1/projects/{project['id']}", headers=co_headers)
        assert fetched.status_code == 200
        body = fetched.json()
        assert body["created_by_id"] is None
        assert {m["user_id"]: m["role"] for m in body["members"]} == {co_id: "owner"}

        feed = await client.get(
            f"/api/v1/projects/{project['id']}/activities", headers=co_headers
        )
        assert feed.status_code == 200
        assert all(item["user_id"] in (None, co_id) for item in feed.json()["items"])

    async def test_team_owner_refused(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await client.post("/api/v1/teams/", json={"name": "Core"}, headers=auth_headers)
        assert team.status_code == 201

        response = await client.request(
            "DELETE", "/api/v1/users/me", json={"password": "TestPass1"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert "teams you own" in response.json()["message"]
        assert (await client.get("/api/v1/users/me", headers=auth_headers)).status_code == 200


class TestOAuthLinking:
    async def test_creates_user_for_new_identity(self, db: AsyncSession) -> None:
        user = await auth_service.link_oauth_user(
            db,
            provider="github",
            provider_id="gh-42",
            email="octo@example.com",
            username="octo",
        )
        assert user.github_id == "gh-42"
        assert user.is_email_verified is True

        again = await auth_service.link_oauth_user(
            db,
            provider="github",
            provider_id="gh-42",
            email="octo@example.com",
            username="octo",
        )
        assert again.id == user.id

    async def test_attaches_provider_to_existing_email(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await auth_service.link_oauth_user(
            db,
            provider="google",
            provider_id="g-7",
            email="testuser@example.com",
            username="whatever",
        )
        assert str(user.id) == registered_user["id"]
        assert user.google_id == "g-7"

    async def test_username_collision_gets_suffix(
        self, client: AsyncClient, db: AsyncSession, registered_user: dict
    ) -> None:
        user = await auth_service.link_oauth_user(
            db,
            provider="google",
            provider_id="g-8",
            email="other@example.com",
            username="testuser",
        )
        assert user.username == "testuser2"
