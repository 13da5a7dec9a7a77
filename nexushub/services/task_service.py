"""
Task business logic service.
Every mutation resolves the actor's project role, asks the permission
evaluator, applies the write, then recomputes project progress, records
an activity and publishes an event to the project room.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.exceptions import BadRequestException, NotFoundException
from nexushub.core.permissions import ProjectAccess
from nexushub.crud.project import crud_project
from nexushub.crud.task import crud_task
from nexushub.crud.user import crud_user
from nexushub.db.base import utcnow
from nexushub.models.comment import TaskComment
from nexushub.models.task import Task
from nexushub.models.user import User
from nexushub.schemas.task import CommentRead, TaskCreate, TaskRead, TaskUpdate
from nexushub.services.activity_service import activity_service
from nexushub.services.events import EventSink, project_room, queue_event, ws_manager
from nexushub.services.progress_service import progress_service

logger = logging.getLogger(__name__)

# Columns that may not be cleared through an update.
_NON_NULLABLE = ("title", "description", "status", "priority", "tags")


class TaskService:

    def __init__(self, events: EventSink) -> None:
        self.events = events

    async def _get_or_404(self, db: AsyncSession, task_id: uuid.UUID) -> Task:
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    async def _resolve_assignees(
        self,
        db: AsyncSession,
        access: ProjectAccess,
        assignee_ids: list[uuid.UUID],
    ) -> list[User]:
        unique_ids = list(dict.fromkeys(assignee_ids))
        outsiders = [uid for uid in unique_ids if uid not in access.roster]
        if outsiders:
            raise BadRequestException(
                "Assignees must be members of the project: "
                + ", ".join(str(uid) for uid in outsiders)
            )
        return await crud_user.get_many(db, unique_ids)

    async def _after_write(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        current_user: User,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        description: str,
        event: str,
        payload: Any,
        meta: dict[str, Any] | None = None,
        recompute: bool = True,
    ) -> None:
        if recompute:
            await progress_service.recompute_safely(db, project_id)
        await activity_service.record(
            db,
            project_id=project_id,
            user_id=current_user.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            meta=meta,
        )
        queue_event(db, self.events, project_room(project_id), event, payload)

    # ── Create ────────────────────────────────────────────────────────────────

    async def create_task(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        task_in: TaskCreate,
        current_user: User,
    ) -> Task:
        """
        Create a task in a project. Members may only assign themselves;
        every assignee must already sit on the project roster.
        """
        project = await crud_project.get(db, project_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        access = permissions.project_access(project)
        permissions.can_create_task(current_user.id, access).enforce()
        permissions.can_assign_task(current_user.id, access, task_in.assignee_ids).enforce()

        assignees = await self._resolve_assignees(db, access, task_in.assignee_ids)
        task = await crud_task.create_task(
            db,
            obj_in=task_in,
            project_id=project.id,
            created_by_id=current_user.id,
            assignees=assignees,
            completed_at=utcnow() if task_in.status == "completed" else None,
        )
        task = await self._get_or_404(db, task.id)

        await self._after_write(
            db,
            project_id=project.id,
            current_user=current_user,
            action="created",
            entity_type="task",
            entity_id=task.id,
            description=f"{current_user.username} created task {task.title!r}",
            event="task_created",
            payload=TaskRead.model_validate(task),
            meta={"status": task.status, "priority": task.priority},
        )
        return await self._get_or_404(db, task.id)

    # ── Read ──────────────────────────────────────────────────────────────────

    async def get_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> Task:
        task = await self._get_or_404(db, task_id)
        permissions.can_view_project(
            current_user.id, permissions.project_access(task.project)
        ).enforce()
        return task

    # ── Update ────────────────────────────────────────────────────────────────

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        task_in: TaskUpdate,
        current_user: User,
    ) -> Task:
        """
        Apply a partial update. Owners and admins may change any field;
        other roster members and assignees may only move the status.
        completed_at is stamped on each transition into "completed" and
        left alone when the task moves back out.
        """
        update_data = task_in.model_dump(exclude_unset=True)
        if not update_data:
            raise BadRequestException("No fields to update")

        task = await self._get_or_404(db, task_id)
        access = permissions.task_access(task)
        permissions.can_update_task(current_user.id, access, update_data.keys()).enforce()

        assignees_changed = False
        if "assignee_ids" in update_data:
            new_ids = update_data.pop("assignee_ids") or []
            if set(new_ids) != set(access.assignee_ids):
                permissions.can_assign_task(current_user.id, access.project, new_ids).enforce()
                task.assignees = await self._resolve_assignees(db, access.project, new_ids)
                assignees_changed = True

        for field in _NON_NULLABLE:
            if field in update_data and update_data[field] is None:
                update_data.pop(field)

        previous_status = task.status
        completed_now = (
            update_data.get("status") == "completed" and previous_status != "completed"
        )
        if completed_now:
            update_data["completed_at"] = utcnow()

        await crud_task.update(db, db_obj=task, obj_in=update_data)
        task = await self._get_or_404(db, task_id)

        if completed_now:
            action = "completed"
            description = f"{current_user.username} completed task {task.title!r}"
        elif assignees_changed:
            action = "assigned"
            description = f"{current_user.username} reassigned task {task.title!r}"
        else:
            action = "updated"
            description = f"{current_user.username} updated task {task.title!r}"

        await self._after_write(
            db,
            project_id=task.project_id,
            current_user=current_user,
            action=action,
            entity_type="task",
            entity_id=task.id,
            description=description,
            event="task_updated",
            payload=TaskRead.model_validate(task),
            meta={"fields": sorted(update_data), "previous_status": previous_status},
        )
        return await self._get_or_404(db, task_id)

    # ── Delete ────────────────────────────────────────────────────────────────

    async def delete_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User,
    ) -> None:
        task = await self._get_or_404(db, task_id)
        permissions.can_delete_task(current_user.id, permissions.task_access(task)).enforce()

        project_id = task.project_id
        title = task.title
        await db.delete(task)
        await db.flush()

        await self._after_write(
            db,
            project_id=project_id,
            current_user=current_user,
            action="deleted",
            entity_type="task",
            entity_id=task_id,
            description=f"{current_user.username} deleted task {title!r}",
            event="task_deleted",
            payload={"id": task_id, "project_id": project_id},
        )

    # ── Comments ──────────────────────────────────────────────────────────────

    async def add_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        content: str,
        current_user: User,
    ) -> TaskComment:
        task = await self._get_or_404(db, task_id)
        permissions.can_comment_on_task(
            current_user.id, permissions.task_access(task)
        ).enforce()

        created = await crud_task.add_comment(
            db, task_id=task.id, author_id=current_user.id, content=content
        )
        comment = await crud_task.get_comment(db, created.id)
        if comment is None:
            raise NotFoundException("Comment", str(created.id))

        await self._after_write(
            db,
            project_id=task.project_id,
            current_user=current_user,
            action="commented",
            entity_type="comment",
            entity_id=comment.id,
            description=f"{current_user.username} commented on task {task.title!r}",
            event="task_commented",
            payload=CommentRead.model_validate(comment),
            meta={"task_id": str(task.id)},
            recompute=False,
        )
        return comment


task_service = TaskService(ws_manager)
