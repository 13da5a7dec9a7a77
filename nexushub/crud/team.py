"""
Team CRUD operations: teams, memberships and join requests.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.base import CRUDBase
from nexushub.models.team import Team, TeamJoinRequest, TeamMember
from nexushub.schemas.team import TeamCreate


class CRUDTeam(CRUDBase[Team]):

    async def create_team(
        self,
        db: AsyncSession,
        *,
        obj_in: TeamCreate,
        owner_id: uuid.UUID,
    ) -> Team:
        team = Team(
            name=obj_in.name,
            description=obj_in.description,
            is_public=obj_in.is_public,
            tags=list(obj_in.tags),
            owner_id=owner_id,
        )
        db.add(team)
        await db.flush()
        return team

    async def list_teams(
        self,
        db: AsyncSession,
        *,
        search: str | None = None,
        is_public: bool | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Team], int]:
        query = select(Team)
        count_query = select(func.count()).select_from(Team)

        if is_public is not None:
            query = query.where(Team.is_public.is_(is_public))
            count_query = count_query.where(Team.is_public.is_(is_public))

        if search:
            term = f"%{search}%"
            search_filter = or_(Team.name.ilike(term), Team.description.ilike(term))
            query = query.where(search_filter)
            count_query = count_query.where(search_filter)

        total = (await db.execute(count_query)).scalar_one()
        result = await db.execute(
            query.order_by(Team.created_at.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def list_owned(self, db: AsyncSession, *, user_id: uuid.UUID) -> list[Team]:
        result = await db.execute(
            select(Team)
            .where(Team.owner_id == user_id)
            .order_by(Team.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_member_of(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> list[Team]:
        """Teams where the user holds a stored membership (never owned ones)."""
        result = await db.execute(
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ── Members ───────────────────────────────────────────────────────────────

    async def get_member(
        self, db: AsyncSession, *, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamMember | None:
        result = await db.execute(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str = "member",
    ) -> TeamMember:
        member = TeamMember(team_id=team_id, user_id=user_id, role=role)
        db.add(member)
        await db.flush()
        return member

    async def remove_member(
        self, db: AsyncSession, *, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamMember | None:
        member = await self.get_member(db, team_id=team_id, user_id=user_id)
        if member is None:
            return None
        await db.delete(member)
        await db.flush()
        return member

    async def update_member_role(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str,
    ) -> TeamMember | None:
        member = await self.get_member(db, team_id=team_id, user_id=user_id)
        if member is None:
            return None
        member.role = role
        db.add(member)
        await db.flush()
        return member

    # ── Join requests ─────────────────────────────────────────────────────────

    async def get_join_request(
        self, db: AsyncSession, *, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamJoinRequest | None:
        result = await db.execute(
            select(TeamJoinRequest).where(
                TeamJoinRequest.team_id == team_id,
                TeamJoinRequest.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_join_requests(
        self, db: AsyncSession, *, team_id: uuid.UUID
    ) -> list[TeamJoinRequest]:
        result = await db.execute(
            select(TeamJoinRequest)
            .where(TeamJoinRequest.team_id == team_id)
            .order_by(TeamJoinRequest.requested_at.asc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def add_join_request(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        message: str = "",
    ) -> TeamJoinRequest:
        join_request = TeamJoinRequest(team_id=team_id, user_id=user_id, message=message)
        db.add(join_request)
        await db.flush()
        return join_request

    async def remove_join_request(
        self, db: AsyncSession, *, team_id: uuid.UUID, user_id: uuid.UUID
    ) -> TeamJoinRequest | None:
        join_request = await self.get_join_request(db, team_id=team_id, user_id=user_id)
        if join_request is None:
            return None
        await db.delete(join_request)
        await db.flush()
        return join_request


crud_team = CRUDTeam(Team)
