"""
Chat routes: direct chats, group chats and their participants.
Messages live under /messages.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from nexushub.core.dependencies import CurrentUser, DBSession
from nexushub.models.chat import Chat, Message
from nexushub.schemas.chat import (
    ChatParticipantChange,
    ChatRead,
    DirectChatOpen,
    GroupChatCreate,
    GroupChatUpdate,
    MessageRead,
)
from nexushub.services.chat_service import chat_service

router = APIRouter(prefix="/chats", tags=["Chats"])


def _read(chat: Chat, latest: Message | None = None) -> ChatRead:
    read = ChatRead.model_validate(chat)
    if latest is not None:
        read.latest_message = MessageRead.from_message(latest)
    return read


@router.post("", response_model=ChatRead, summary="Open (or create) a direct chat")
async def open_direct_chat(
    body: DirectChatOpen, current_user: CurrentUser, db: DBSession
) -> ChatRead:
    chat = await chat_service.open_direct_chat(
        db, user_id=body.user_id, current_user=current_user
    )
    return _read(chat)


@router.get("", response_model=list[ChatRead], summary="My chats, most recent first")
async def list_chats(current_user: CurrentUser, db: DBSession) -> list[ChatRead]:
    rows = await chat_service.list_chats(db, current_user=current_user)
    return [_read(chat, latest) for chat, latest in rows]


@router.post(
    "/group",
    response_model=ChatRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a group chat",
)
async def create_group_chat(
    body: GroupChatCreate, current_user: CurrentUser, db: DBSession
) -> ChatRead:
    chat = await chat_service.create_group_chat(db, chat_in=body, current_user=current_user)
    return _read(chat)


@router.put("/group/{chat_id}", response_model=ChatRead, summary="Rename a group chat")
async def update_group_chat(
    chat_id: uuid.UUID,
    body: GroupChatUpdate,
    current_user: CurrentUser,
    db: DBSession,
) -> ChatRead:
    chat = await chat_service.update_group_chat(
        db, chat_id=chat_id, chat_in=body, current_user=current_user
    )
    return _read(chat)


@router.post(
    "/group/{chat_id}/participants",
    response_model=ChatRead,
    summary="Add a user to a group chat (admin only)",
)
async def add_participant(
    chat_id: uuid.UUID,
    body: ChatParticipantChange,
    current_user: CurrentUser,
    db: DBSession,
) -> ChatRead:
    chat = await chat_service.add_participant(
        db, chat_id=chat_id, user_id=body.user_id, current_user=current_user
    )
    return _read(chat)


@router.delete(
    "/group/{chat_id}/participants/{user_id}",
    response_model=ChatRead,
    summary="Remove a user from a group chat, or leave it",
)
async def remove_participant(
    chat_id: uuid.UUID,
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
) -> ChatRead:
    chat = await chat_service.remove_participant(
        db, chat_id=chat_id, user_id=user_id, current_user=current_user
    )
    return _read(chat)
