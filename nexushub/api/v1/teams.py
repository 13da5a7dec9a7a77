"""
Team management routes: teams, members and join requests.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from nexushub.core.dependencies import CurrentUser, DBSession, Pagination
from nexushub.core.permissions import JoinOutcome
from nexushub.schemas.pagination import PaginatedResponse
from nexushub.schemas.team import (
    JoinRequestDecision,
    MyTeams,
    TeamCreate,
    TeamJoin,
    TeamJoinRequestRead,
    TeamJoinResult,
    TeamMemberAdd,
    TeamMemberUpdateRole,
    TeamRead,
    TeamReadWithMembers,
    TeamUpdate,
)
from nexushub.services.team_service import team_service

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.post(
    "/",
    response_model=TeamReadWithMembers,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new team and its default project",
)
async def create_team(
    team_in: TeamCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.create_team(db, team_in=team_in, current_user=current_user)
    return TeamReadWithMembers.model_validate(team)


@router.get(
    "/",
    response_model=PaginatedResponse[TeamRead],
    summary="Browse teams",
)
async def list_teams(
    _current_user: CurrentUser,
    db: DBSession,
    paging: Pagination,
    search: str | None = Query(default=None, max_length=200),
    is_public: bool | None = Query(default=None),
) -> PaginatedResponse[TeamRead]:
    teams, total = await team_service.list_teams(
        db, search=search, is_public=is_public, skip=paging.skip, limit=paging.size
    )
    return PaginatedResponse(
        items=[TeamRead.model_validate(t) for t in teams],
        total=total,
        page=paging.page,
        size=paging.size,
    )


@router.get(
    "/my-teams",
    response_model=MyTeams,
    summary="Teams I own and teams I belong to",
)
async def my_teams(current_user: CurrentUser, db: DBSession) -> MyTeams:
    owned, member = await team_service.my_teams(db, current_user=current_user)
    return MyTeams(
        owned=[TeamRead.model_validate(t) for t in owned],
        member=[TeamRead.model_validate(t) for t in member],
    )


@router.get(
    "/{team_id}",
    response_model=TeamReadWithMembers,
    summary="Get team details with members",
)
async def get_team(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.get_team(db, team_id=team_id, current_user=current_user)
    return TeamReadWithMembers.model_validate(team)


@router.put(
    "/{team_id}",
    response_model=TeamReadWithMembers,
    summary="Update team details",
)
async def update_team(
    team_id: uuid.UUID,
    team_in: TeamUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.update_team(
        db, team_id=team_id, team_in=team_in, current_user=current_user
    )
    return TeamReadWithMembers.model_validate(team)


@router.delete(
    "/{team_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a team (its projects are kept)",
)
async def delete_team(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await team_service.delete_team(db, team_id=team_id, current_user=current_user)


# ── Members ───────────────────────────────────────────────────────────────────

@router.post(
    "/{team_id}/members",
    response_model=TeamReadWithMembers,
    status_code=status.HTTP_201_CREATED,
    summary="Add a member to the team",
)
async def add_member(
    team_id: uuid.UUID,
    member_in: TeamMemberAdd,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.add_member(
        db, team_id=team_id, member_in=member_in, current_user=current_user
    )
    return TeamReadWithMembers.model_validate(team)


@router.patch(
    "/{team_id}/members/{user_id}",
    response_model=TeamReadWithMembers,
    summary="Change a member's role",
)
async def update_member_role(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    role_in: TeamMemberUpdateRole,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.update_member_role(
        db,
        team_id=team_id,
        user_id=user_id,
        role=role_in.role,
        current_user=current_user,
    )
    return TeamReadWithMembers.model_validate(team)


@router.delete(
    "/{team_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a member (or leave the team)",
)
async def remove_member(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> None:
    await team_service.remove_member(
        db, team_id=team_id, user_id=user_id, current_user=current_user
    )


# ── Join requests ─────────────────────────────────────────────────────────────

@router.post(
    "/{team_id}/join",
    response_model=TeamJoinResult,
    summary="Join a public team or request to join a private one",
)
async def join_team(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    body: TeamJoin | None = None,
) -> TeamJoinResult:
    outcome, team = await team_service.join_team(
        db,
        team_id=team_id,
        message=body.message if body is not None else "",
        current_user=current_user,
    )
    return TeamJoinResult(
        status="joined" if outcome is JoinOutcome.MEMBERSHIP else "requested",
        team=TeamReadWithMembers.model_validate(team),
    )


@router.get(
    "/{team_id}/join-requests",
    response_model=list[TeamJoinRequestRead],
    summary="List pending join requests",
)
async def list_join_requests(
    team_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> list[TeamJoinRequestRead]:
    requests = await team_service.list_join_requests(
        db, team_id=team_id, current_user=current_user
    )
    return [TeamJoinRequestRead.model_validate(r) for r in requests]


@router.post(
    "/{team_id}/join-requests/{user_id}",
    response_model=TeamReadWithMembers,
    summary="Accept or reject a join request",
)
async def handle_join_request(
    team_id: uuid.UUID,
    user_id: uuid.UUID,
    decision: JoinRequestDecision,
    current_user: CurrentUser,
    db: DBSession,
) -> TeamReadWithMembers:
    team = await team_service.handle_join_request(
        db,
        team_id=team_id,
        user_id=user_id,
        action=decision.action,
        current_user=current_user,
    )
    return TeamReadWithMembers.model_validate(team)
