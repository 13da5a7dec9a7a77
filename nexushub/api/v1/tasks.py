"""
Task routes.
Tasks are created under a project and addressed by id afterwards.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from nexushub.core.dependencies import CurrentUser, DBSession
from nexushub.schemas.task import CommentCreate, CommentRead, TaskCreate, TaskRead, TaskUpdate
from nexushub.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post(
    "/project/{project_id}",
    response_model=TaskRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task in a project",
)
async def create_task(
    project_id: uuid.UUID,
    task_in: TaskCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.create_task(
        db, project_id=project_id, task_in=task_in, current_user=current_user
    )
    return TaskRead.model_validate(task)


@router.get("/{task_id}", response_model=TaskRead, summary="Get a task by ID")
async def get_task(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.get_task(db, task_id=task_id, current_user=current_user)
    return TaskRead.model_validate(task)


@router.put("/{task_id}", response_model=TaskRead, summary="Update a task")
async def update_task(
    task_id: uuid.UUID,
    task_in: TaskUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> TaskRead:
    task = await task_service.update_task(
        db, task_id=task_id, task_in=task_in, current_user=current_user
    )
    return TaskRead.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a task",
)
async def delete_task(
    task_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await task_service.delete_task(db, task_id=task_id, current_user=current_user)


@router.post(
    "/{task_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a task",
)
async def add_comment(
    task_id: uuid.UUID,
    comment_in: CommentCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> CommentRead:
    comment = await task_service.add_comment(
        db, task_id=task_id, content=comment_in.content, current_user=current_user
    )
    return CommentRead.model_validate(comment)
