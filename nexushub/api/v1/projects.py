"""
Project routes: CRUD, roster management, task listing and activity feed.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from nexushub.core.dependencies import CurrentUser, DBSession, Pagination
from nexushub.schemas.activity import ActivityRead
from nexushub.schemas.pagination import PaginatedResponse
from nexushub.schemas.project import (
    ProjectCreate,
    ProjectMemberAdd,
    ProjectRead,
    ProjectStatus,
    ProjectUpdate,
)
from nexushub.schemas.task import TaskRead, TaskStatus
from nexushub.services.project_service import project_service

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post(
    "/",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a personal or team project",
)
async def create_project(
    project_in: ProjectCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.create_project(
        db, project_in=project_in, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.get(
    "/",
    response_model=list[ProjectRead],
    summary="List projects visible to me",
)
async def list_projects(
    current_user: CurrentUser,
    db: DBSession,
    status_filter: ProjectStatus | None = Query(default=None, alias="status"),
) -> list[ProjectRead]:
    projects = await project_service.list_projects(db, current_user=current_user)
    return [
        ProjectRead.model_validate(p)
        for p in projects
        if status_filter is None or p.status == status_filter
    ]


@router.get("/{project_id}", response_model=ProjectRead, summary="Get a project")
async def get_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.get_viewable(
        db, project_id=project_id, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.put("/{project_id}", response_model=ProjectRead, summary="Update a project")
async def update_project(
    project_id: uuid.UUID,
    project_in: ProjectUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.update_project(
        db, project_id=project_id, project_in=project_in, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project with its tasks and activity",
)
async def delete_project(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await project_service.delete_project(
        db, project_id=project_id, current_user=current_user
    )


# ── Roster ────────────────────────────────────────────────────────────────────

@router.post(
    "/{project_id}/members",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a user to the project roster",
)
async def add_member(
    project_id: uuid.UUID,
    member_in: ProjectMemberAdd,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.add_member(
        db, project_id=project_id, member_in=member_in, current_user=current_user
    )
    return ProjectRead.model_validate(project)


@router.delete(
    "/{project_id}/members/{user_id}",
    response_model=ProjectRead,
    summary="Remove a user from the project roster",
)
async def remove_member(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ProjectRead:
    project = await project_service.remove_member(
        db, project_id=project_id, user_id=user_id, current_user=current_user
    )
    return ProjectRead.model_validate(project)


# ── Tasks & activity ──────────────────────────────────────────────────────────

@router.get(
    "/{project_id}/tasks",
    response_model=list[TaskRead],
    summary="List the project's tasks",
)
async def list_project_tasks(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    status_filter: TaskStatus | None = Query(default=None, alias="status"),
) -> list[TaskRead]:
    tasks = await project_service.list_tasks(
        db, project_id=project_id, current_user=current_user, status=status_filter
    )
    return [TaskRead.model_validate(t) for t in tasks]


@router.get(
    "/{project_id}/activities",
    response_model=PaginatedResponse[ActivityRead],
    summary="Project activity feed, newest first",
)
async def list_project_activities(
    project_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    paging: Pagination,
) -> PaginatedResponse[ActivityRead]:
    activities, total = await project_service.list_activities(
        db,
        project_id=project_id,
        current_user=current_user,
        skip=paging.skip,
        limit=paging.size,
    )
    return PaginatedResponse(
        items=[ActivityRead.model_validate(a) for a in activities],
        total=total,
        page=paging.page,
        size=paging.size,
    )
