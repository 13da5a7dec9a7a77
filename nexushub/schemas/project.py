"""
Project and ProjectMember Pydantic schemas.
Derived progress fields are read-only and absent from the write schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from nexushub.schemas.user import UserReadPublic

ProjectStatus = Literal["planning", "in-progress", "on-hold", "completed"]
ProjectPriority = Literal["low", "medium", "high"]
ProjectMemberRole = Literal["owner", "admin", "member"]


# ── Create / Update ───────────────────────────────────────────────────────────

class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(default="", max_length=5000)
    team_id: uuid.UUID | None = None
    status: ProjectStatus = "planning"
    priority: ProjectPriority = "medium"
    tags: list[str] = Field(default_factory=list, max_length=20)
    start_date: datetime | None = None
    due_date: datetime | None = None


class ProjectUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = Field(default=None, max_length=5000)
    status: ProjectStatus | None = None
    priority: ProjectPriority | None = None
    tags: list[str] | None = Field(default=None, max_length=20)
    start_date: datetime | None = None
    due_date: datetime | None = None


# ── Roster ────────────────────────────────────────────────────────────────────

class ProjectMemberAdd(BaseModel):
    user_id: uuid.UUID
    role: ProjectMemberRole = "member"


class ProjectMemberRead(BaseModel):
    user_id: uuid.UUID
    role: str
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


# ── Read ──────────────────────────────────────────────────────────────────────

class ProjectRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    created_by_id: uuid.UUID | None
    team_id: uuid.UUID | None
    status: str
    priority: str
    progress: int
    total_tasks: int
    completed_tasks: int
    is_personal: bool
    tags: list[str]
    start_date: datetime
    due_date: datetime | None
    created_at: datetime
    updated_at: datetime
    creator: UserReadPublic | None = None
    members: list[ProjectMemberRead] = []

    model_config = {"from_attributes": True}
