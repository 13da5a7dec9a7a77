"""
Task endpoint tests.
Covers: create, read, update, delete, comments, role enforcement, progress
recompute after every write and event publication.
"""
from __future__ import annotations

from typing import Any

import pytest
from httpx import AsyncClient

from nexushub.core.exceptions import NotFoundException
from nexushub.crud.activity import crud_activity
from nexushub.crud.task import crud_task
from nexushub.services.events import project_room
from nexushub.services.task_service import task_service

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
    resp = await client.post(
        "/api/v1/projects/", json={"title": "Board"}, headers=headers
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _add_member(
    client: AsyncClient,
    owner_headers: dict,
    project_id: str,
    email: str,
    username: str,
    role: str = "member",
) -> tuple[dict[str, str], str]:
    headers, user_id = await _register_and_login(client, email, username)
    resp = await client.post(
        f"/api/v1/projects/{project_id}/members",
        json={"user_id": user_id, "role": role},
        headers=owner_headers,
    )
    assert resp.status_code == 201, resp.text
    return headers, user_id


async def _create_task(
    client: AsyncClient,
    headers: dict,
    project_id: str,
    title: str = "Test Task",
    **kwargs: Any,
) -> dict[str, Any]:
    payload = {"title": title, "description": "A test task description", **kwargs}
    response = await client.post(
        f"/api/v1/tasks/project/{project_id}", json=payload, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _project(client: AsyncClient, headers: dict, project_id: str) -> dict[str, Any]:
    return (await client.get(f"/api/v1/projects/{project_id}", headers=headers)).json()


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    async def publish(self, room: str, event: str, payload: Any) -> None:
        self.events.append((room, event, payload))


class ExplodingSink:
    async def publish(self, room: str, event: str, payload: Any) -> None:
        raise RuntimeError("transport down")


class TestCreateTask:
    async def test_create_task_success(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={
                "title": "My First Task",
                "description": "Do something important",
                "priority": "high",
                "tags": ["urgent", "backend"],
                "assignee_ids": [registered_user["id"]],
            },
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["title"] == "My First Task"
        assert data["priority"] == "high"
        assert data["status"] == "todo"
        assert data["completed_at"] is None
        assert data["project_id"] == project["id"]
        assert [a["id"] for a in data["assignees"]] == [registered_user["id"]]

    async def test_create_completed_task_stamps_completed_at(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"], status="completed")
        assert task["completed_at"] is not None

        refreshed = await _project(client, auth_headers, project["id"])
        assert (refreshed["progress"], refreshed["completed_tasks"]) == (100, 1)

    async def test_create_task_unauthenticated(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/tasks/project/00000000-0000-0000-0000-000000000000",
            json={"title": "Unauthorized Task"},
        )
        assert response.status_code == 401

    async def test_create_in_missing_project(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        response = await client.post(
            "/api/v1/tasks/project/00000000-0000-0000-0000-000000000000",
            json={"title": "Lost"},
            headers=auth_headers,
        )
        assert response.status_code == 404

    async def test_outsider_cannot_create(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        outsider, _ = await _register_and_login(client, "x@example.com", "outsider")
        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={"title": "Intruder"},
            headers=outsider,
        )
        assert response.status_code == 403

    async def test_assignee_must_be_on_roster(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        _, outsider_id = await _register_and_login(client, "x@example.com", "outsider")
        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={"title": "Delegated", "assignee_ids": [outsider_id]},
            headers=auth_headers,
        )
        assert response.status_code == 400

    async def test_member_may_only_assign_self(
        self, client: AsyncClient, auth_headers: dict, registered_user: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        member_headers, member_id = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        await _create_task(
            client, member_headers, project["id"], assignee_ids=[member_id]
        )

        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={"title": "Boss work", "assignee_ids": [registered_user["id"]]},
            headers=member_headers,
        )
        assert response.status_code == 403

    async def test_invalid_status(self, client: AsyncClient, auth_headers: dict) -> None:
        project = await _create_project(client, auth_headers)
        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={"title": "Odd", "status": "pending"},
            headers=auth_headers,
        )
        assert response.status_code == 400


class TestReadTask:
    async def test_get_task(self, client: AsyncClient, auth_headers: dict) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == task["id"]

    async def test_get_missing_task(self, client: AsyncClient, auth_headers: dict) -> None:
        response = await client.get(
            "/api/v1/tasks/00000000-0000-0000-0000-000000000000", headers=auth_headers
        )
        assert response.status_code == 404

    async def test_outsider_forbidden(self, client: AsyncClient, auth_headers: dict) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        outsider, _ = await _register_and_login(client, "x@example.com", "outsider")
        response = await client.get(f"/api/v1/tasks/{task['id']}", headers=outsider)
        assert response.status_code == 403

    async def test_list_project_tasks_with_status_filter(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        await _create_task(client, auth_headers, project["id"], title="A")
        done = await _create_task(
            client, auth_headers, project["id"], title="B", status="completed"
        )

        all_tasks = await client.get(
            f"/api/v1/projects/{project['id']}/tasks", headers=auth_headers
        )
        assert [t["title"] for t in all_tasks.json()] == ["A", "B"]

        completed = await client.get(
            f"/api/v1/projects/{project['id']}/tasks",
            params={"status": "completed"},
            headers=auth_headers,
        )
        assert [t["id"] for t in completed.json()] == [done["id"]]


class TestProgress:
    async def test_progress_follows_every_write(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        tasks = [
            await _create_task(client, auth_headers, project["id"], title=f"T{i}")
            for i in range(3)
        ]
        snapshot = await _project(client, auth_headers, project["id"])
        assert (snapshot["progress"], snapshot["total_tasks"]) == (0, 3)

        await client.put(
            f"/api/v1/tasks/{tasks[0]['id']}", json={"status": "completed"}, headers=auth_headers
        )
        snapshot = await _project(client, auth_headers, project["id"])
        assert (snapshot["progress"], snapshot["completed_tasks"]) == (33, 1)

        await client.put(
            f"/api/v1/tasks/{tasks[1]['id']}", json={"status": "completed"}, headers=auth_headers
        )
        snapshot = await _project(client, auth_headers, project["id"])
        assert snapshot["progress"] == 67

        deleted = await client.delete(f"/api/v1/tasks/{tasks[2]['id']}", headers=auth_headers)
        assert deleted.status_code == 204
        snapshot = await _project(client, auth_headers, project["id"])
        assert (snapshot["progress"], snapshot["total_tasks"], snapshot["completed_tasks"]) == (
            100,
            2,
            2,
        )

        await client.put(
            f"/api/v1/tasks/{tasks[0]['id']}", json={"status": "review"}, headers=auth_headers
        )
        snapshot = await _project(client, auth_headers, project["id"])
        assert snapshot["progress"] == 50

    async def test_recompute_failure_does_not_fail_write(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        project = await _create_project(client, auth_headers)

        async def broken_count(*args: Any, **kwargs: Any) -> tuple[int, int]:
            raise RuntimeError("count failed")

        monkeypatch.setattr(crud_task, "count_for_project", broken_count)
        await _create_task(client, auth_headers, project["id"])
        monkeypatch.undo()

        snapshot = await _project(client, auth_headers, project["id"])
        assert snapshot["total_tasks"] == 0
        tasks = await client.get(f"/api/v1/projects/{project['id']}/tasks", headers=auth_headers)
        assert len(tasks.json()) == 1


class TestUpdateTask:
    async def test_member_completes_own_task(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        member_headers, member_id = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        task = await _create_task(
            client, member_headers, project["id"], assignee_ids=[member_id]
        )

        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"status": "completed"},
            headers=member_headers,
        )
        assert response.status_code == 200
        assert response.json()["completed_at"] is not None

        snapshot = await _project(client, auth_headers, project["id"])
        assert (snapshot["completed_tasks"], snapshot["progress"]) == (1, 100)

    async def test_unassigned_member_status_only(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        member_headers, _ = await _add_member(
            client, auth_headers, project["id"], "b@example.com", "bob"
        )

        denied = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"priority": "high"},
            headers=member_headers,
        )
        assert denied.status_code == 403
        assert denied.json()["error"] == "FORBIDDEN"

        allowed = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"status": "in-progress"},
            headers=member_headers,
        )
        assert allowed.status_code == 200
        assert allowed.json()["status"] == "in-progress"
        assert allowed.json()["priority"] == "medium"

    async def test_completed_at_survives_later_updates(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        url = f"/api/v1/tasks/{task['id']}"

        completed = await client.put(url, json={"status": "completed"}, headers=auth_headers)
        stamp = completed.json()["completed_at"]
        assert stamp is not None

        renamed = await client.put(url, json={"title": "Renamed"}, headers=auth_headers)
        assert renamed.json()["completed_at"] == stamp

        still_completed = await client.put(
            url, json={"status": "completed"}, headers=auth_headers
        )
        assert still_completed.json()["completed_at"] == stamp

        reopened = await client.put(url, json={"status": "in-progress"}, headers=auth_headers)
        assert reopened.json()["completed_at"] == stamp

    async def test_empty_update_rejected(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        response = await client.put(
            f"/api/v1/tasks/{task['id']}", json={}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_project_id_is_not_updatable(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        other = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"project_id": other["id"]},
            headers=auth_headers,
        )
        assert response.status_code == 400

        fetched = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers)
        assert fetched.json()["project_id"] == project["id"]

    async def test_admin_reassigns(self, client: AsyncClient, auth_headers: dict) -> None:
        project = await _create_project(client, auth_headers)
        admin_headers, _ = await _add_member(
            client, auth_headers, project["id"], "ad@example.com", "admin1", role="admin"
        )
        _, member_id = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        task = await _create_task(client, auth_headers, project["id"])

        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"assignee_ids": [member_id]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert [a["id"] for a in response.json()["assignees"]] == [member_id]

        feed = await client.get(
            f"/api/v1/projects/{project['id']}/activities", headers=auth_headers
        )
        assert feed.json()["items"][0]["action"] == "assigned"

    async def test_member_cannot_reassign(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        member_headers, member_id = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        task = await _create_task(
            client, member_headers, project["id"], assignee_ids=[member_id]
        )
        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"assignee_ids": []},
            headers=member_headers,
        )
        assert response.status_code == 403

    async def test_clearing_required_field_is_ignored(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"], title="Keep me")
        response = await client.put(
            f"/api/v1/tasks/{task['id']}",
            json={"title": None, "priority": "low"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Keep me"
        assert response.json()["priority"] == "low"


class TestDeleteTask:
    async def test_creator_deletes_own_task(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        member_headers, _ = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        task = await _create_task(client, member_headers, project["id"])

        response = await client.delete(f"/api/v1/tasks/{task['id']}", headers=member_headers)
        assert response.status_code == 204

        feed = await client.get(
            f"/api/v1/projects/{project['id']}/activities", headers=auth_headers
        )
        assert feed.json()["items"][0]["action"] == "deleted"

    async def test_member_cannot_delete_others_task(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        member_headers, _ = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )
        response = await client.delete(f"/api/v1/tasks/{task['id']}", headers=member_headers)
        assert response.status_code == 403


class TestComments:
    async def test_member_comments(self, client: AsyncClient, auth_headers: dict) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        member_headers, member_id = await _add_member(
            client, auth_headers, project["id"], "a@example.com", "alice"
        )

        response = await client.post(
            f"/api/v1/tasks/{task['id']}/comments",
            json={"content": "Looks good"},
            headers=member_headers,
        )
        assert response.status_code == 201
        assert response.json()["author_id"] == member_id

        fetched = await client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers)
        assert [c["content"] for c in fetched.json()["comments"]] == ["Looks good"]

        feed = await client.get(
            f"/api/v1/projects/{project['id']}/activities", headers=auth_headers
        )
        latest = feed.json()["items"][0]
        assert (latest["action"], latest["entity_type"]) == ("commented", "comment")

    async def test_outsider_cannot_comment(
        self, client: AsyncClient, auth_headers: dict
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])
        outsider, _ = await _register_and_login(client, "x@example.com", "outsider")
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/comments",
            json={"content": "Hi"},
            headers=outsider,
        )
        assert response.status_code == 403

    async def test_unreadable_comment_is_not_found(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        project = await _create_project(client, auth_headers)
        task = await _create_task(client, auth_headers, project["id"])

        async def missing_comment(*args: Any, **kwargs: Any) -> None:
            return None

        monkeypatch.setattr(crud_task, "get_comment", missing_comment)
        response = await client.post(
            f"/api/v1/tasks/{task['id']}/comments",
            json={"content": "Lost"},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"


class TestSideEffects:
    async def test_events_published_to_project_room(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        sink = RecordingSink()
        monkeypatch.setattr(task_service, "events", sink)
        project = await _create_project(client, auth_headers)

        task = await _create_task(client, auth_headers, project["id"])
        await client.put(
            f"/api/v1/tasks/{task['id']}", json={"status": "review"}, headers=auth_headers
        )
        await client.delete(f"/api/v1/tasks/{task['id']}", headers=auth_headers)

        room = project_room(project["id"])
        assert [(r, e) for r, e, _ in sink.events] == [
            (room, "task_created"),
            (room, "task_updated"),
            (room, "task_deleted"),
        ]
        assert str(sink.events[0][2].id) == task["id"]

    async def test_broken_sink_does_not_fail_request(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(task_service, "events", ExplodingSink())
        project = await _create_project(client, auth_headers)
        await _create_task(client, auth_headers, project["id"])

    async def test_activity_failure_does_not_fail_request(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        project = await _create_project(client, auth_headers)

        async def broken_create(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("audit store down")

        monkeypatch.setattr(crud_activity, "create", broken_create)
        await _create_task(client, auth_headers, project["id"])
        monkeypatch.undo()

        snapshot = await _project(client, auth_headers, project["id"])
        assert snapshot["total_tasks"] == 1

    async def test_failed_request_publishes_nothing(
        self,
        client: AsyncClient,
        auth_headers: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        project = await _create_project(client, auth_headers)
        sink = RecordingSink()
        monkeypatch.setattr(task_service, "events", sink)

        real_get = task_service._get_or_404
        calls = 0

        async def vanishing_get(db: Any, task_id: Any) -> Any:
            nonlocal calls
            calls += 1
            if calls > 1:
                raise NotFoundException("Task", str(task_id))
            return await real_get(db, task_id)

        # the task is created and the event queued, then the handler fails
        monkeypatch.setattr(task_service, "_get_or_404", vanishing_get)
        response = await client.post(
            f"/api/v1/tasks/project/{project['id']}",
            json={"title": "Doomed"},
            headers=auth_headers,
        )
        assert response.status_code == 404
        assert sink.events == []
