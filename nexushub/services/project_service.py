"""
Project management service.
Handles personal and team projects, their member rosters, cascading
deletes and the project activity feed.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.exceptions import BadRequestException, NotFoundException
from nexushub.core.permissions import Role
from nexushub.crud.activity import crud_activity
from nexushub.crud.project import crud_project
from nexushub.crud.task import crud_task
from nexushub.crud.team import crud_team
from nexushub.crud.user import crud_user
from nexushub.models.activity import Activity
from nexushub.models.project import Project
from nexushub.models.task import Task
from nexushub.models.team import Team
from nexushub.models.user import User
from nexushub.schemas.project import ProjectCreate, ProjectMemberAdd, ProjectUpdate
from nexushub.services.activity_service import activity_service
from nexushub.services.events import EventSink, project_room, queue_event, ws_manager

logger = logging.getLogger(__name__)


def seed_roster_from_team(team: Team, creator_id: uuid.UUID) -> dict[uuid.UUID, str]:
    """
    Copy the team's membership into a new project roster.
    Members keep their role; the team owner and the creator become owners.
    """
    roster = {m.user_id: m.role for m in team.members}
    roster[team.owner_id] = Role.OWNER.value
    roster[creator_id] = Role.OWNER.value
    return roster


class ProjectService:

    def __init__(self, events: EventSink) -> None:
        self.events = events

    async def _get_or_404(self, db: AsyncSession, project_id: uuid.UUID) -> Project:
        project = await crud_project.get(db, project_id)
        if project is None:
            raise NotFoundException("Project", str(project_id))
        return project

    async def get_viewable(
        self, db: AsyncSession, *, project_id: uuid.UUID, current_user: User
    ) -> Project:
        project = await self._get_or_404(db, project_id)
        permissions.can_view_project(
            current_user.id, permissions.project_access(project)
        ).enforce()
        return project

    # ── Create ────────────────────────────────────────────────────────────────

    async def create_project(
        self,
        db: AsyncSession,
        *,
        project_in: ProjectCreate,
        current_user: User,
    ) -> Project:
        if project_in.team_id is not None:
            team = await crud_team.get(db, project_in.team_id)
            if team is None:
                raise NotFoundException("Team", str(project_in.team_id))
            permissions.can_create_team_project(
                current_user.id, permissions.team_access(team)
            ).enforce()
            roster = seed_roster_from_team(team, current_user.id)
        else:
            roster = {current_user.id: Role.OWNER.value}

        project = await crud_project.create_project(
            db,
            title=project_in.title,
            description=project_in.description,
            created_by_id=current_user.id,
            roster=roster,
            team_id=project_in.team_id,
            status=project_in.status,
            priority=project_in.priority,
            tags=list(project_in.tags),
            start_date=project_in.start_date,
            due_date=project_in.due_date,
        )
        await activity_service.record(
            db,
            project_id=project.id,
            user_id=current_user.id,
            action="created",
            entity_type="project",
            entity_id=project.id,
            description=f"{current_user.username} created project {project.title!r}",
        )
        return await self._get_or_404(db, project.id)

    async def create_default_project(
        self,
        db: AsyncSession,
        *,
        team: Team,
        current_user: User,
        title: str,
        description: str = "",
    ) -> Project:
        """Project created alongside a new team; its roster is just the creator."""
        project = await crud_project.create_project(
            db,
            title=title,
            description=description,
            created_by_id=current_user.id,
            roster={current_user.id: Role.OWNER.value},
            team_id=team.id,
        )
        await activity_service.record(
            db,
            project_id=project.id,
            user_id=current_user.id,
            action="created",
            entity_type="project",
            entity_id=project.id,
            description=f"{current_user.username} created project {project.title!r} for team {team.name!r}",
            meta={"team_id": str(team.id)},
        )
        return project

    # ── Read ──────────────────────────────────────────────────────────────────

    async def list_projects(self, db: AsyncSession, *, current_user: User) -> list[Project]:
        return await crud_project.list_visible(db, user_id=current_user.id)

    async def list_tasks(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        current_user: User,
        status: str | None = None,
    ) -> list[Task]:
        await self.get_viewable(db, project_id=project_id, current_user=current_user)
        return await crud_task.list_by_project(db, project_id=project_id, status=status)

    async def list_activities(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        current_user: User,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Activity], int]:
        await self.get_viewable(db, project_id=project_id, current_user=current_user)
        return await crud_activity.list_by_project(
            db, project_id=project_id, skip=skip, limit=limit
        )

    # ── Update / Delete ───────────────────────────────────────────────────────

    async def update_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        project_in: ProjectUpdate,
        current_user: User,
    ) -> Project:
        update_data = project_in.model_dump(exclude_unset=True)
        if not update_data:
            raise BadRequestException("No fields to update")

        project = await self._get_or_404(db, project_id)
        permissions.can_update_project(
            current_user.id, permissions.project_access(project)
        ).enforce()

        await crud_project.update(db, db_obj=project, obj_in=update_data)
        await activity_service.record(
            db,
            project_id=project.id,
            user_id=current_user.id,
            action="completed" if update_data.get("status") == "completed" else "updated",
            entity_type="project",
            entity_id=project.id,
            description=f"{current_user.username} updated project {project.title!r}",
            meta={"fields": sorted(update_data)},
        )
        project = await self._get_or_404(db, project_id)
        queue_event(
            db, self.events, project_room(project.id), "project_updated", {"id": project.id}
        )
        return project

    async def delete_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        current_user: User,
    ) -> None:
        """Delete the project with its tasks (and their comments) and activities."""
        project = await self._get_or_404(db, project_id)
        permissions.can_delete_project(
            current_user.id, permissions.project_access(project)
        ).enforce()

        for task in await crud_task.list_by_project(db, project_id=project_id):
            await db.delete(task)
        await crud_activity.delete_for_project(db, project_id=project_id)
        await db.delete(project)
        await db.flush()
        logger.info("Project %s deleted by %s", project_id, current_user.id)

        queue_event(
            db, self.events, project_room(project_id), "project_deleted", {"id": project_id}
        )

    # ── Roster ────────────────────────────────────────────────────────────────

    async def add_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        member_in: ProjectMemberAdd,
        current_user: User,
    ) -> Project:
        project = await self._get_or_404(db, project_id)
        access = permissions.project_access(project)
        permissions.can_manage_project_members(current_user.id, access).enforce()
        if member_in.role == Role.OWNER.value:
            permissions.can_delete_project(current_user.id, access).enforce()

        user = await crud_user.get(db, member_in.user_id)
        if user is None:
            raise NotFoundException("User", str(member_in.user_id))
        if member_in.user_id in access.roster:
            raise BadRequestException("User is already a member of this project")

        await crud_project.add_member(
            db, project_id=project.id, user_id=user.id, role=member_in.role
        )
        await activity_service.record(
            db,
            project_id=project.id,
            user_id=current_user.id,
            action="joined",
            entity_type="project",
            entity_id=project.id,
            description=f"{user.username} was added to project {project.title!r}",
            meta={"user_id": str(user.id), "role": member_in.role},
        )
        return await self._get_or_404(db, project_id)

    async def remove_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> Project:
        project = await self._get_or_404(db, project_id)
        access = permissions.project_access(project)

        target_role = access.roster.get(user_id)
        if target_role is Role.OWNER:
            permissions.can_delete_project(current_user.id, access).enforce()
        elif user_id != current_user.id:
            permissions.can_manage_project_members(current_user.id, access).enforce()
        if target_role is None:
            raise NotFoundException("Project member", str(user_id))

        owners = [uid for uid, role in access.roster.items() if role is Role.OWNER]
        if target_role is Role.OWNER and len(owners) <= 1:
            raise BadRequestException("A project must keep at least one owner")

        await crud_project.remove_member(db, project_id=project.id, user_id=user_id)
        removed = await crud_user.get(db, user_id)
        name = removed.username if removed is not None else str(user_id)
        await activity_service.record(
            db,
            project_id=project.id,
            user_id=current_user.id,
            action="left",
            entity_type="project",
            entity_id=project.id,
            description=(
                f"{name} left project {project.title!r}"
                if user_id == current_user.id
                else f"{name} was removed from project {project.title!r}"
            ),
            meta={"user_id": str(user_id), "role": target_role.value},
        )
        return await self._get_or_404(db, project_id)


project_service = ProjectService(ws_manager)
