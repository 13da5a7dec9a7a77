"""
Team management service.
Handles team creation (with its default project), membership, join
requests for private teams, and team deletion with project detachment.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.exceptions import BadRequestException, NotFoundException
from nexushub.core.permissions import JoinOutcome
from nexushub.crud.project import crud_project
from nexushub.crud.team import crud_team
from nexushub.crud.user import crud_user
from nexushub.models.team import Team, TeamJoinRequest
from nexushub.models.user import User
from nexushub.schemas.team import TeamCreate, TeamMemberAdd, TeamUpdate
from nexushub.services.events import EventSink, queue_event, ws_manager
from nexushub.services.project_service import ProjectService, project_service

logger = logging.getLogger(__name__)


class TeamService:

    def __init__(self, events: EventSink, projects: ProjectService) -> None:
        self.events = events
        self.projects = projects

    async def _get_or_404(self, db: AsyncSession, team_id: uuid.UUID) -> Team:
        team = await crud_team.get(db, team_id)
        if team is None:
            raise NotFoundException("Team", str(team_id))
        return team

    # ── Create / Read ─────────────────────────────────────────────────────────

    async def create_team(
        self,
        db: AsyncSession,
        *,
        team_in: TeamCreate,
        current_user: User,
    ) -> Team:
        """
        Create a team owned by the current user together with its default
        project. The owner is never stored as a member row.
        """
        permissions.can_create_team(current_user.id).enforce()
        team = await crud_team.create_team(db, obj_in=team_in, owner_id=current_user.id)

        if team_in.initial_project is not None:
            title = team_in.initial_project.title
            description = team_in.initial_project.description
        else:
            title = f"{team.name} Project"
            description = team.description
        try:
            async with db.begin_nested():
                await self.projects.create_default_project(
                    db,
                    team=team,
                    current_user=current_user,
                    title=title,
                    description=description,
                )
        except Exception:
            logger.exception("Default project creation failed for team %s", team.id)

        logger.info("Team %s created by %s", team.id, current_user.id)
        return await self._get_or_404(db, team.id)

    async def list_teams(
        self,
        db: AsyncSession,
        *,
        search: str | None,
        is_public: bool | None,
        skip: int,
        limit: int,
    ) -> tuple[list[Team], int]:
        return await crud_team.list_teams(
            db, search=search, is_public=is_public, skip=skip, limit=limit
        )

    async def my_teams(
        self, db: AsyncSession, *, current_user: User
    ) -> tuple[list[Team], list[Team]]:
        owned = await crud_team.list_owned(db, user_id=current_user.id)
        member = await crud_team.list_member_of(db, user_id=current_user.id)
        return owned, member

    async def get_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
    ) -> Team:
        team = await self._get_or_404(db, team_id)
        permissions.can_view_team(current_user.id, permissions.team_access(team)).enforce()
        return team

    # ── Update / Delete ───────────────────────────────────────────────────────

    async def update_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        team_in: TeamUpdate,
        current_user: User,
    ) -> Team:
        update_data = team_in.model_dump(exclude_unset=True)
        if not update_data:
            raise BadRequestException("No fields to update")
        team = await self._get_or_404(db, team_id)
        permissions.can_update_team(current_user.id, permissions.team_access(team)).enforce()
        await crud_team.update(db, db_obj=team, obj_in=update_data)
        return await self._get_or_404(db, team_id)

    async def delete_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
    ) -> None:
        """
        Delete the team. Linked projects survive: they are detached and the
        team's members lose their non-owner seats in them. A failure while
        detaching is logged and does not stop the delete.
        """
        team = await self._get_or_404(db, team_id)
        permissions.can_delete_team(current_user.id, permissions.team_access(team)).enforce()

        member_ids = [m.user_id for m in team.members]
        project_ids = [p.id for p in team.projects]
        try:
            async with db.begin_nested():
                await crud_project.detach_team(db, team_id=team.id)
                await crud_project.remove_non_owner_members(
                    db, project_ids=project_ids, user_ids=member_ids
                )
        except Exception:
            logger.exception("Project detachment failed while deleting team %s", team.id)

        await db.delete(team)
        await db.flush()
        logger.info("Team %s deleted by %s", team_id, current_user.id)

    # ── Members ───────────────────────────────────────────────────────────────

    async def add_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        member_in: TeamMemberAdd,
        current_user: User,
    ) -> Team:
        team = await self._get_or_404(db, team_id)
        access = permissions.team_access(team)
        permissions.can_add_team_member(current_user.id, access).enforce()

        target_user = await crud_user.get(db, member_in.user_id)
        if target_user is None:
            raise NotFoundException("User", str(member_in.user_id))
        if permissions.team_role(member_in.user_id, access) is not None:
            raise BadRequestException("User is already a member of this team")

        await crud_team.remove_join_request(db, team_id=team.id, user_id=target_user.id)
        await crud_team.add_member(
            db, team_id=team.id, user_id=target_user.id, role=member_in.role
        )
        queue_event(
            db,
            self.events,
            str(target_user.id),
            "team_member_added",
            {"team_id": team.id, "name": team.name, "role": member_in.role},
        )
        return await self._get_or_404(db, team_id)

    async def update_member_role(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        role: str,
        current_user: User,
    ) -> Team:
        team = await self._get_or_404(db, team_id)
        permissions.can_change_member_role(
            current_user.id, permissions.team_access(team)
        ).enforce()
        if user_id == team.owner_id:
            raise BadRequestException("The owner's role cannot be changed")

        member = await crud_team.update_member_role(
            db, team_id=team.id, user_id=user_id, role=role
        )
        if member is None:
            raise NotFoundException("Team member", str(user_id))
        return await self._get_or_404(db, team_id)

    async def remove_member(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> None:
        team = await self._get_or_404(db, team_id)
        permissions.can_remove_team_member(
            current_user.id, permissions.team_access(team), user_id
        ).enforce()
        if user_id == team.owner_id:
            # the owner holds no membership row; nothing to remove
            logger.info("Owner %s asked to leave team %s; left unchanged", user_id, team.id)
            return

        removed = await crud_team.remove_member(db, team_id=team.id, user_id=user_id)
        if removed is None:
            raise NotFoundException("Team member", str(user_id))

    # ── Joining ───────────────────────────────────────────────────────────────

    async def join_team(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        message: str,
        current_user: User,
    ) -> tuple[JoinOutcome, Team]:
        """
        Public teams admit the user at once; private teams record a join
        request for the owner or an admin to review.
        """
        team = await self._get_or_404(db, team_id)
        access = permissions.team_access(team)
        if permissions.team_role(current_user.id, access) is not None:
            raise BadRequestException("You are already a member of this team")

        outcome = permissions.join_outcome(access)
        if outcome is JoinOutcome.MEMBERSHIP:
            await crud_team.remove_join_request(db, team_id=team.id, user_id=current_user.id)
            await crud_team.add_member(db, team_id=team.id, user_id=current_user.id)
        else:
            pending = await crud_team.get_join_request(
                db, team_id=team.id, user_id=current_user.id
            )
            if pending is not None:
                raise BadRequestException("A join request is already pending")
            await crud_team.add_join_request(
                db, team_id=team.id, user_id=current_user.id, message=message
            )
            queue_event(
                db,
                self.events,
                str(team.owner_id),
                "team_join_requested",
                {"team_id": team.id, "user_id": current_user.id, "message": message},
            )
        return outcome, await self._get_or_404(db, team_id)

    async def list_join_requests(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        current_user: User,
    ) -> list[TeamJoinRequest]:
        team = await self._get_or_404(db, team_id)
        permissions.can_review_join_requests(
            current_user.id, permissions.team_access(team)
        ).enforce()
        return await crud_team.list_join_requests(db, team_id=team.id)

    async def handle_join_request(
        self,
        db: AsyncSession,
        *,
        team_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
        current_user: User,
    ) -> Team:
        """Accept or reject a pending request. The request is consumed either way."""
        team = await self._get_or_404(db, team_id)
        permissions.can_review_join_requests(
            current_user.id, permissions.team_access(team)
        ).enforce()

        removed = await crud_team.remove_join_request(db, team_id=team.id, user_id=user_id)
        if removed is None:
            raise NotFoundException("Join request", str(user_id))

        if action == "accept":
            await crud_team.add_member(db, team_id=team.id, user_id=user_id)

        queue_event(
            db,
            self.events,
            str(user_id),
            "team_join_request_handled",
            {"team_id": team.id, "action": action},
        )
        return await self._get_or_404(db, team_id)


team_service = TeamService(ws_manager, project_service)
