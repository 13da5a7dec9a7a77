"""
Team endpoint tests.
Covers: create with default project, membership management, public joins,
private join requests and team deletion with project detachment.
"""
from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

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


async def _create_team(
    client: AsyncClient,
    headers: dict,
    name: str = "Test Team",
    **kwargs: Any,
) -> dict[str, Any]:
    resp = await client.post(
        "/api/v1/teams/",
        json={"name": name, "description": "A test team", **kwargs},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _member_ids(team: dict[str, Any]) -> list[str]:
    return [m["user_id"] for m in team["members"]]


class TestCreateTeam:
    async def test_create_team_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        response = await client.post(
            "/api/v1/teams/",
            json={"name": "Engineering", "description": "Backend team", "tags": ["api"]},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Engineering"
        assert data["owner_id"] == registered_user["id"]
        assert data["tags"] == ["api"]
        assert data["members"] == []

    async def test_create_team_makes_default_project(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Platform")
        assert len(team["projects"]) == 1
        assert team["projects"][0]["title"] == "Platform Project"

        project = await client.get(
            f"/api/v1/projects/{team['projects'][0]['id']}", headers=auth_headers
        )
        assert project.status_code == 200
        data = project.json()
        assert data["team_id"] == team["id"]
        assert data["is_personal"] is False
        assert [(m["user_id"], m["role"]) for m in data["members"]] == [
            (registered_user["id"], "owner")
        ]

    async def test_create_team_with_initial_project(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(
            client,
            auth_headers,
            name="Design",
            initial_project={"title": "Brand refresh", "description": "Q3"},
        )
        assert [p["title"] for p in team["projects"]] == ["Brand refresh"]

    async def test_create_team_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/teams/",
            json={"name": "Unauthorized Team"},
        )
        assert response.status_code == 401

    async def test_create_team_blank_name(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/teams/", json={"name": ""}, headers=auth_headers
        )
        assert response.status_code == 400


class TestReadTeams:
    async def test_get_team_success(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Visible Team")
        response = await client.get(
            f"/api/v1/teams/{team['id']}", headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == team["id"]
        assert "members" in data

    async def test_private_team_forbidden_to_outsider(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Hidden", is_public=False)
        outsider, _ = await _register_and_login(client, "out@example.com", "outsider")
        response = await client.get(f"/api/v1/teams/{team['id']}", headers=outsider)
        assert response.status_code == 403

    async def test_public_team_visible_to_outsider(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, name="Open")
        outsider, _ = await _register_and_login(client, "out@example.com", "outsider")
        response = await client.get(f"/api/v1/teams/{team['id']}", headers=outsider)
        assert response.status_code == 200

    async def test_get_missing_team(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.get(
            "/api/v1/teams/00000000-0000-0000-0000-000000000000",
            headers=auth_headers,
        )
        assert response.status_code == 404

    async def test_list_teams_filters(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        await _create_team(client, auth_headers, name="Alpha Squad")
        await _create_team(client, auth_headers, name="Beta Squad", is_public=False)
        await _create_team(client, auth_headers, name="Gamma")

        response = await client.get(
            "/api/v1/teams/", params={"search": "squad"}, headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {t["name"] for t in data["items"]} == {"Alpha Squad", "Beta Squad"}

        private = await client.get(
            "/api/v1/teams/", params={"is_public": "false"}, headers=auth_headers
        )
        assert [t["name"] for t in private.json()["items"]] == ["Beta Squad"]

    async def test_list_teams_pagination(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        for i in range(3):
            await _create_team(client, auth_headers, name=f"Team {i}")
        response = await client.get(
            "/api/v1/teams/", params={"page": 2, "size": 2}, headers=auth_headers
        )
        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 1

    async def test_my_teams(self, client: AsyncClient, auth_headers: dict) -> None:
        mine = await _create_team(client, auth_headers, name="Mine")
        other_headers, _ = await _register_and_login(client, "o@example.com", "otherowner")
        theirs = await _create_team(client, other_headers, name="Theirs")
        join = await client.post(f"/api/v1/teams/{theirs['id']}/join", headers=auth_headers)
        assert join.status_code == 200

        response = await client.get("/api/v1/teams/my-teams", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert [t["id"] for t in data["owned"]] == [mine["id"]]
        assert [t["id"] for t in data["member"]] == [theirs["id"]]


class TestUpdateTeam:
    async def test_owner_updates(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.put(
            f"/api/v1/teams/{team['id']}",
            json={"name": "Renamed", "is_public": False},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["is_public"] is False

    async def test_empty_update_rejected(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.put(
            f"/api/v1/teams/{team['id']}", json={}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_admin_cannot_update(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        admin_headers, admin_id = await _register_and_login(client, "a@example.com", "admin1")
        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": admin_id, "role": "admin"},
            headers=auth_headers,
        )
        response = await client.put(
            f"/api/v1/teams/{team['id']}", json={"name": "Mine now"}, headers=admin_headers
        )
        assert response.status_code == 403


class TestTeamMembers:
    async def test_add_member_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        _, member_id = await _register_and_login(client, "m@example.com", "member1")

        response = await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": member_id},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert member_id in _member_ids(data)
        assert registered_user["id"] not in _member_ids(data)

    async def test_add_duplicate_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        _, member_id = await _register_and_login(client, "m@example.com", "member1")
        url = f"/api/v1/teams/{team['id']}/members"
        await client.post(url, json={"user_id": member_id}, headers=auth_headers)

        response = await client.post(url, json={"user_id": member_id}, headers=auth_headers)
        assert response.status_code == 400

    async def test_add_owner_as_member_rejected(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": registered_user["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_add_unknown_user(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": "00000000-0000-0000-0000-000000000000"},
            headers=auth_headers,
        )
        assert response.status_code == 404

    async def test_member_cannot_add_members(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        member_headers, _ = await _register_and_login(client, "m@example.com", "member1")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=member_headers)
        _, target_id = await _register_and_login(client, "t@example.com", "target1")

        response = await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": target_id},
            headers=member_headers,
        )
        assert response.status_code == 403

    async def test_change_role(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        _, member_id = await _register_and_login(client, "m@example.com", "member1")
        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": member_id},
            headers=auth_headers,
        )

        response = await client.patch(
            f"/api/v1/teams/{team['id']}/members/{member_id}",
            json={"role": "admin"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        roles = {m["user_id"]: m["role"] for m in response.json()["members"]}
        assert roles[member_id] == "admin"

    async def test_change_owner_role_rejected(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.patch(
            f"/api/v1/teams/{team['id']}/members/{registered_user['id']}",
            json={"role": "member"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_change_role_of_non_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        _, stranger_id = await _register_and_login(client, "s@example.com", "stranger")
        response = await client.patch(
            f"/api/v1/teams/{team['id']}/members/{stranger_id}",
            json={"role": "admin"},
            headers=auth_headers,
        )
        assert response.status_code == 404

    async def test_admin_removes_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        admin_headers, admin_id = await _register_and_login(client, "a@example.com", "admin1")
        _, member_id = await _register_and_login(client, "m@example.com", "member1")
        url = f"/api/v1/teams/{team['id']}/members"
        await client.post(url, json={"user_id": admin_id, "role": "admin"}, headers=auth_headers)
        await client.post(url, json={"user_id": member_id}, headers=auth_headers)

        response = await client.delete(f"{url}/{member_id}", headers=admin_headers)
        assert response.status_code == 204

        team_resp = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert member_id not in _member_ids(team_resp.json())

    async def test_member_leaves(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        member_headers, member_id = await _register_and_login(client, "m@example.com", "member1")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=member_headers)

        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{member_id}", headers=member_headers
        )
        assert response.status_code == 204

    async def test_admin_cannot_remove_owner(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        admin_headers, admin_id = await _register_and_login(client, "a@example.com", "admin1")
        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": admin_id, "role": "admin"},
            headers=auth_headers,
        )
        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{registered_user['id']}",
            headers=admin_headers,
        )
        assert response.status_code == 403

    async def test_owner_leaving_is_a_no_op(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{registered_user['id']}",
            headers=auth_headers,
        )
        assert response.status_code == 204

        after = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert after.status_code == 200
        assert after.json()["owner_id"] == registered_user["id"]
        assert after.json()["members"] == team["members"]

    async def test_remove_non_member(self, client: AsyncClient, auth_headers: dict) -> None:
        team = await _create_team(client, auth_headers)
        _, stranger_id = await _register_and_login(client, "s@example.com", "stranger")
        response = await client.delete(
            f"/api/v1/teams/{team['id']}/members/{stranger_id}", headers=auth_headers
        )
        assert response.status_code == 404


class TestJoinPublicTeam:
    async def test_join_adds_member_immediately(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=True)
        joiner, joiner_id = await _register_and_login(client, "c@example.com", "carol")

        response = await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "joined"
        roles = {m["user_id"]: m["role"] for m in data["team"]["members"]}
        assert roles[joiner_id] == "member"

        pending = await client.get(
            f"/api/v1/teams/{team['id']}/join-requests", headers=auth_headers
        )
        assert pending.json() == []

    async def test_join_twice_rejected(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        joiner, _ = await _register_and_login(client, "c@example.com", "carol")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)

        response = await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)
        assert response.status_code == 400

    async def test_owner_cannot_join_own_team(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        response = await client.post(f"/api/v1/teams/{team['id']}/join", headers=auth_headers)
        assert response.status_code == 400

        team_resp = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert registered_user["id"] not in _member_ids(team_resp.json())


class TestJoinPrivateTeam:
    async def test_join_creates_request(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        joiner, joiner_id = await _register_and_login(client, "d@example.com", "dave")

        response = await client.post(
            f"/api/v1/teams/{team['id']}/join",
            json={"message": "Let me in"},
            headers=joiner,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "requested"
        assert joiner_id not in _member_ids(response.json()["team"])

        pending = await client.get(
            f"/api/v1/teams/{team['id']}/join-requests", headers=auth_headers
        )
        assert pending.status_code == 200
        assert [(r["user_id"], r["message"]) for r in pending.json()] == [
            (joiner_id, "Let me in")
        ]

    async def test_duplicate_pending_request(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        joiner, _ = await _register_and_login(client, "d@example.com", "dave")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)

        response = await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)
        assert response.status_code == 400

    async def test_reject_then_request_again(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        joiner, joiner_id = await _register_and_login(client, "d@example.com", "dave")
        await client.post(
            f"/api/v1/teams/{team['id']}/join", json={"message": "hi"}, headers=joiner
        )
        url = f"/api/v1/teams/{team['id']}/join-requests/{joiner_id}"

        rejected = await client.post(url, json={"action": "reject"}, headers=auth_headers)
        assert rejected.status_code == 200
        assert joiner_id not in _member_ids(rejected.json())

        pending = await client.get(
            f"/api/v1/teams/{team['id']}/join-requests", headers=auth_headers
        )
        assert pending.json() == []

        handled_again = await client.post(url, json={"action": "accept"}, headers=auth_headers)
        assert handled_again.status_code == 404

        retry = await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)
        assert retry.status_code == 200
        assert retry.json()["status"] == "requested"

    async def test_accept_adds_member(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        joiner, joiner_id = await _register_and_login(client, "d@example.com", "dave")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)

        response = await client.post(
            f"/api/v1/teams/{team['id']}/join-requests/{joiner_id}",
            json={"action": "accept"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        roles = {m["user_id"]: m["role"] for m in response.json()["members"]}
        assert roles[joiner_id] == "member"

        visible = await client.get(f"/api/v1/teams/{team['id']}", headers=joiner)
        assert visible.status_code == 200

    async def test_member_cannot_review_requests(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        member_headers, member_id = await _register_and_login(
            client, "m@example.com", "member1"
        )
        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": member_id},
            headers=auth_headers,
        )
        response = await client.get(
            f"/api/v1/teams/{team['id']}/join-requests", headers=member_headers
        )
        assert response.status_code == 403

    async def test_direct_add_clears_pending_request(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers, is_public=False)
        joiner, joiner_id = await _register_and_login(client, "d@example.com", "dave")
        await client.post(f"/api/v1/teams/{team['id']}/join", headers=joiner)

        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": joiner_id},
            headers=auth_headers,
        )
        pending = await client.get(
            f"/api/v1/teams/{team['id']}/join-requests", headers=auth_headers
        )
        assert pending.json() == []


class TestDeleteTeam:
    async def test_delete_keeps_projects_and_strips_members(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        member_headers, member_id = await _register_and_login(client, "m@example.com", "member1")
        await client.post(
            f"/api/v1/teams/{team['id']}/members",
            json={"user_id": member_id},
            headers=auth_headers,
        )
        created = await client.post(
            "/api/v1/projects/",
            json={"title": "Team roadmap", "team_id": team["id"]},
            headers=auth_headers,
        )
        assert created.status_code == 201
        project_id = created.json()["id"]
        assert member_id in [m["user_id"] for m in created.json()["members"]]

        response = await client.delete(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert response.status_code == 204

        gone = await client.get(f"/api/v1/teams/{team['id']}", headers=auth_headers)
        assert gone.status_code == 404

        project = await client.get(f"/api/v1/projects/{project_id}", headers=auth_headers)
        assert project.status_code == 200
        data = project.json()
        assert data["team_id"] is None
        assert [m["user_id"] for m in data["members"]] == [registered_user["id"]]

        default_project = await client.get(
            f"/api/v1/projects/{team['projects'][0]['id']}", headers=auth_headers
        )
        assert default_project.status_code == 200

        lost_access = await client.get(f"/api/v1/projects/{project_id}", headers=member_headers)
        assert lost_access.status_code == 403

    async def test_non_owner_cannot_delete(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        team = await _create_team(client, auth_headers)
        other, _ = await _register_and_login(client, "o@example.com", "other1")
        response = await client.delete(f"/api/v1/teams/{team['id']}", headers=other)
        assert response.status_code == 403
