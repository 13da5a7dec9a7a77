"""
Feed schemas: posts, likes, comments and shares.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from nexushub.schemas.user import UserReadPublic

PostVisibility = Literal["public", "connections", "private"]


class PostCreate(BaseModel):
    content: str = Field(min_length=1, max_length=5000)
    tags: list[str] = Field(default_factory=list, max_length=20)
    visibility: PostVisibility = "public"
    project_id: uuid.UUID | None = None
    location: str | None = Field(default=None, max_length=255)


class PostShareCreate(BaseModel):
    content: str = Field(default="", max_length=5000)


class PostCommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class PostLikeRead(BaseModel):
    user_id: uuid.UUID
    created_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class PostCommentRead(BaseModel):
    id: uuid.UUID
    post_id: uuid.UUID
    user_id: uuid.UUID
    content: str
    created_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class PostShareRead(BaseModel):
    user_id: uuid.UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class SharedPostRead(BaseModel):
    """The original embedded in a share."""

    id: uuid.UUID
    author_id: uuid.UUID
    content: str
    tags: list[str]
    visibility: str
    created_at: datetime
    author: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class PostRead(BaseModel):
    id: uuid.UUID
    author_id: uuid.UUID
    content: str
    tags: list[str]
    visibility: str
    project_id: uuid.UUID | None
    location: str | None
    shared_post_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    author: UserReadPublic | None = None
    likes: list[PostLikeRead] = []
    comments: list[PostCommentRead] = []
    shares: list[PostShareRead] = []
    shared_post: SharedPostRead | None = None

    model_config = {"from_attributes": True}


class PostLikeUpdate(BaseModel):
    """Answer to a like toggle; also the post_like_update event payload."""

    post_id: uuid.UUID
    liked: bool
    likes: list[PostLikeRead]


class PostCommentsUpdate(BaseModel):
    """Answer to a new comment; also the new_comment event payload."""

    post_id: uuid.UUID
    comments: list[PostCommentRead]
