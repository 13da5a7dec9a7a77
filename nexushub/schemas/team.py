"""
Team, TeamMember and TeamJoinRequest Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from nexushub.schemas.user import UserReadPublic

TeamMemberRole = Literal["admin", "member"]


# ── Team Create / Update / Read ───────────────────────────────────────────────

class InitialProject(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(default="", max_length=5000)


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    is_public: bool = True
    tags: list[str] = Field(default_factory=list, max_length=20)
    initial_project: InitialProject | None = None


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    is_public: bool | None = None
    tags: list[str] | None = Field(default=None, max_length=20)


class TeamMemberRead(BaseModel):
    user_id: uuid.UUID
    role: str
    joined_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class TeamProjectSummary(BaseModel):
    id: uuid.UUID
    title: str
    status: str
    progress: int

    model_config = {"from_attributes": True}


class TeamRead(BaseModel):
    id: uuid.UUID
    name: str
    description: str
    owner_id: uuid.UUID
    is_public: bool
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    owner: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class TeamReadWithMembers(TeamRead):
    members: list[TeamMemberRead] = []
    projects: list[TeamProjectSummary] = []


class MyTeams(BaseModel):
    owned: list[TeamRead]
    member: list[TeamRead]


# ── TeamMember schemas ────────────────────────────────────────────────────────

class TeamMemberAdd(BaseModel):
    user_id: uuid.UUID
    role: TeamMemberRole = "member"


class TeamMemberUpdateRole(BaseModel):
    role: TeamMemberRole


# ── Join requests ─────────────────────────────────────────────────────────────

class TeamJoin(BaseModel):
    message: str = Field(default="", max_length=1000)


class TeamJoinRequestRead(BaseModel):
    user_id: uuid.UUID
    message: str
    requested_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class TeamJoinResult(BaseModel):
    status: Literal["joined", "requested"]
    team: TeamReadWithMembers


class JoinRequestDecision(BaseModel):
    action: Literal["accept", "reject"]
