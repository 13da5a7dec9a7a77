"""
Message routes.
POST /messages, GET /messages/{chat_id}, PUT /messages/{chat_id}/read
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from nexushub.core.dependencies import CurrentUser, DBSession
from nexushub.schemas.chat import MessageCreate, MessageRead, ReadReceiptResult
from nexushub.schemas.pagination import PaginatedResponse
from nexushub.services.chat_service import chat_service

router = APIRouter(prefix="/messages", tags=["Chats"])


@router.post(
    "",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message to a chat",
)
async def send_message(
    body: MessageCreate, current_user: CurrentUser, db: DBSession
) -> MessageRead:
    message = await chat_service.send_message(
        db, chat_id=body.chat_id, content=body.content, current_user=current_user
    )
    return MessageRead.from_message(message)


@router.get(
    "/{chat_id}",
    response_model=PaginatedResponse[MessageRead],
    summary="Messages of a chat, oldest first",
)
async def list_messages(
    chat_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=200),
) -> PaginatedResponse[MessageRead]:
    messages, total = await chat_service.list_messages(
        db, chat_id=chat_id, current_user=current_user, skip=(page - 1) * size, limit=size
    )
    return PaginatedResponse(
        items=[MessageRead.from_message(m) for m in messages],
        total=total,
        page=page,
        size=size,
    )


@router.put(
    "/{chat_id}/read",
    response_model=ReadReceiptResult,
    summary="Mark every message in the chat as read",
)
async def mark_read(
    chat_id: uuid.UUID, current_user: CurrentUser, db: DBSession
) -> ReadReceiptResult:
    marked = await chat_service.mark_read(db, chat_id=chat_id, current_user=current_user)
    return ReadReceiptResult(chat_id=chat_id, marked=marked)
