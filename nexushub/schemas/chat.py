"""
Chat and message schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from nexushub.schemas.user import UserReadPublic


class DirectChatOpen(BaseModel):
    user_id: uuid.UUID


class GroupChatCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    # the creator is added on top of these
    user_ids: list[uuid.UUID] = Field(min_length=2, max_length=100)


class GroupChatUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)


class ChatParticipantChange(BaseModel):
    user_id: uuid.UUID


class MessageCreate(BaseModel):
    chat_id: uuid.UUID
    content: str = Field(min_length=1, max_length=5000)


class MessageRead(BaseModel):
    id: uuid.UUID
    chat_id: uuid.UUID
    sender_id: uuid.UUID | None
    content: str
    created_at: datetime
    sender: UserReadPublic | None = None
    read_by: list[uuid.UUID] = []

    model_config = {"from_attributes": True}

    @classmethod
    def from_message(cls, message: object) -> "MessageRead":
        read = cls.model_validate(message)
        read.read_by = [r.user_id for r in getattr(message, "receipts", ())]
        return read


class ChatParticipantRead(BaseModel):
    user_id: uuid.UUID
    joined_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}


class ChatRead(BaseModel):
    id: uuid.UUID
    name: str | None
    description: str
    is_group: bool
    group_admin_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    participants: list[ChatParticipantRead] = []
    latest_message: MessageRead | None = None

    model_config = {"from_attributes": True}


class ReadReceiptResult(BaseModel):
    chat_id: uuid.UUID
    marked: int
