"""
Task CRUD operations.
Extends CRUDBase with project-scoped listing, status counts and comments.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.base import CRUDBase
from nexushub.models.comment import TaskComment
from nexushub.models.task import Task
from nexushub.models.user import User
from nexushub.schemas.task import TaskCreate


class CRUDTask(CRUDBase[Task]):

    async def create_task(
        self,
        db: AsyncSession,
        *,
        obj_in: TaskCreate,
        project_id: uuid.UUID,
        created_by_id: uuid.UUID,
        assignees: list[User],
        completed_at: datetime | None = None,
    ) -> Task:
        task = Task(
            title=obj_in.title,
            description=obj_in.description,
            status=obj_in.status,
            priority=obj_in.priority,
            due_date=obj_in.due_date,
            tags=list(obj_in.tags),
            project_id=project_id,
            created_by_id=created_by_id,
            completed_at=completed_at,
        )
        task.assignees = assignees
        task.comments = []
        db.add(task)
        await db.flush()
        return task

    async def list_by_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        status: str | None = None,
    ) -> list[Task]:
        query = select(Task).where(Task.project_id == project_id)
        if status is not None:
            query = query.where(Task.status == status)
        result = await db.execute(
            query.order_by(Task.created_at.asc()).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def count_for_project(
        self, db: AsyncSession, *, project_id: uuid.UUID
    ) -> tuple[int, int]:
        """Return (total, completed) for every task in the project."""
        result = await db.execute(
            select(
                func.count(Task.id),
                func.coalesce(
                    func.sum(case((Task.status == "completed", 1), else_=0)), 0
                ),
            ).where(Task.project_id == project_id)
        )
        total, completed = result.one()
        return int(total), int(completed)

    # ── Comments ──────────────────────────────────────────────────────────────

    async def add_comment(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        author_id: uuid.UUID,
        content: str,
    ) -> TaskComment:
        comment = TaskComment(content=content, task_id=task_id, author_id=author_id)
        db.add(comment)
        await db.flush()
        return comment

    async def get_comment(
        self, db: AsyncSession, comment_id: uuid.UUID
    ) -> TaskComment | None:
        result = await db.execute(
            select(TaskComment)
            .where(TaskComment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


crud_task = CRUDTask(Task)
