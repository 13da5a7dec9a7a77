"""
Project CRUD operations: projects and their member rosters.
"""
from __future__ import annotations

import uuid

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.base import CRUDBase
from nexushub.models.project import Project, ProjectMember
from nexushub.models.team import Team, TeamMember


class CRUDProject(CRUDBase[Project]):

    async def create_project(
        self,
        db: AsyncSession,
        *,
        title: str,
        description: str,
        created_by_id: uuid.UUID,
        roster: dict[uuid.UUID, str],
        team_id: uuid.UUID | None = None,
        **fields: object,
    ) -> Project:
        project = Project(
            title=title,
            description=description,
            created_by_id=created_by_id,
            team_id=team_id,
            is_personal=team_id is None,
            **{k: v for k, v in fields.items() if v is not None},
        )
        project.members = [
            ProjectMember(user_id=user_id, role=role) for user_id, role in roster.items()
        ]
        db.add(project)
        await db.flush()
        return project

    async def list_visible(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> list[Project]:
        """Projects the user created, sits on the roster of, or reaches through a team."""
        team_ids = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
        owned_team_ids = select(Team.id).where(Team.owner_id == user_id)
        roster_ids = select(ProjectMember.project_id).where(ProjectMember.user_id == user_id)
        result = await db.execute(
            select(Project)
            .where(
                or_(
                    Project.created_by_id == user_id,
                    Project.id.in_(roster_ids),
                    Project.team_id.in_(team_ids),
                    Project.team_id.in_(owned_team_ids),
                )
            )
            .order_by(Project.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_owned_by(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> list[Project]:
        """Projects whose roster lists the user as an owner."""
        owned_ids = select(ProjectMember.project_id).where(
            ProjectMember.user_id == user_id,
            ProjectMember.role == "owner",
        )
        result = await db.execute(
            select(Project)
            .where(Project.id.in_(owned_ids))
            .order_by(Project.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def detach_team(self, db: AsyncSession, *, team_id: uuid.UUID) -> None:
        await db.execute(
            update(Project)
            .where(Project.team_id == team_id)
            .values(team_id=None)
            .execution_options(synchronize_session=False)
        )

    # ── Roster ────────────────────────────────────────────────────────────────

    async def get_member(
        self, db: AsyncSession, *, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> ProjectMember | None:
        result = await db.execute(
            select(ProjectMember).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_member(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str = "member",
    ) -> ProjectMember:
        member = ProjectMember(project_id=project_id, user_id=user_id, role=role)
        db.add(member)
        await db.flush()
        return member

    async def remove_member(
        self, db: AsyncSession, *, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> ProjectMember | None:
        member = await self.get_member(db, project_id=project_id, user_id=user_id)
        if member is None:
            return None
        await db.delete(member)
        await db.flush()
        return member

    async def remove_non_owner_members(
        self,
        db: AsyncSession,
        *,
        project_ids: list[uuid.UUID],
        user_ids: list[uuid.UUID],
    ) -> None:
        if not project_ids or not user_ids:
            return
        await db.execute(
            delete(ProjectMember)
            .where(
                ProjectMember.project_id.in_(project_ids),
                ProjectMember.user_id.in_(user_ids),
                ProjectMember.role != "owner",
            )
            .execution_options(synchronize_session=False)
        )


crud_project = CRUDProject(Project)
