"""
Project progress recompute.
Always a full recount of the project's tasks, never an incremental update.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.project import crud_project
from nexushub.crud.task import crud_task

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressSnapshot:
    progress: int
    total_tasks: int
    completed_tasks: int


def compute_progress(completed: int, total: int) -> int:
    """Percentage of completed tasks rounded half-up; 0 for an empty project."""
    if total <= 0:
        return 0
    return (completed * 200 + total) // (2 * total)


class ProgressService:

    async def recompute(
        self, db: AsyncSession, project_id: uuid.UUID
    ) -> ProgressSnapshot | None:
        """
        Recount the project's tasks and persist all three derived fields
        in a single flush. Returns None when the project no longer exists.
        """
        project = await crud_project.get(db, project_id)
        if project is None:
            logger.warning("Progress recompute skipped: project %s not found", project_id)
            return None

        total, completed = await crud_task.count_for_project(db, project_id=project_id)
        snapshot = ProgressSnapshot(
            progress=compute_progress(completed, total),
            total_tasks=total,
            completed_tasks=completed,
        )
        project.progress = snapshot.progress
        project.total_tasks = snapshot.total_tasks
        project.completed_tasks = snapshot.completed_tasks
        db.add(project)
        await db.flush()
        logger.debug(
            "Project %s progress=%s (%s/%s)",
            project_id,
            snapshot.progress,
            completed,
            total,
        )
        return snapshot

    async def recompute_safely(
        self, db: AsyncSession, project_id: uuid.UUID
    ) -> ProgressSnapshot | None:
        """
        Run recompute inside a SAVEPOINT. A failure rolls back only the
        derived fields and is logged; the triggering task write stands.
        """
        try:
            async with db.begin_nested():
                return await self.recompute(db, project_id)
        except Exception:
            logger.exception("Progress recompute failed for project %s", project_id)
            return None


progress_service = ProgressService()
