"""
Task and TaskComment Pydantic schemas.
TaskUpdate has no project_id: a task never moves between projects.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from nexushub.schemas.user import UserReadPublic

TaskStatus = Literal["backlog", "todo", "in-progress", "review", "completed"]
TaskPriority = Literal["low", "medium", "high"]


# ── Create ────────────────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str = Field(default="", max_length=10000)
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: datetime | None = None
    assignee_ids: list[uuid.UUID] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list, max_length=20)


# ── Update ────────────────────────────────────────────────────────────────────

class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assignee_ids: list[uuid.UUID] | None = None
    tags: list[str] | None = Field(default=None, max_length=20)


# ── Comments ──────────────────────────────────────────────────────────────────

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


class CommentRead(BaseModel):
    id: uuid.UUID
    content: str
    task_id: uuid.UUID
    author_id: uuid.UUID
    created_at: datetime
    author: UserReadPublic | None = None

    model_config = {"from_attributes": True}


# ── Read ──────────────────────────────────────────────────────────────────────

class TaskRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    project_id: uuid.UUID
    created_by_id: uuid.UUID | None
    status: str
    priority: str
    due_date: datetime | None
    completed_at: datetime | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    creator: UserReadPublic | None = None
    assignees: list[UserReadPublic] = []
    comments: list[CommentRead] = []

    model_config = {"from_attributes": True}
