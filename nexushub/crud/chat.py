"""
Chat CRUD operations: chats, participants, messages and read receipts.
"""
from __future__ import annotations

import uuid

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from nexushub.crud.base import CRUDBase
from nexushub.models.chat import Chat, ChatParticipant, Message, MessageReceipt


def _chats_of(user_id: uuid.UUID) -> Select[tuple[uuid.UUID]]:
    return select(ChatParticipant.chat_id).where(ChatParticipant.user_id == user_id)


class CRUDChat(CRUDBase[Chat]):

    async def create_chat(
        self,
        db: AsyncSession,
        *,
        participant_ids: list[uuid.UUID],
        is_group: bool = False,
        name: str | None = None,
        description: str = "",
        admin_id: uuid.UUID | None = None,
    ) -> Chat:
        chat = Chat(
            name=name,
            description=description,
            is_group=is_group,
            group_admin_id=admin_id,
        )
        chat.participants = [
            ChatParticipant(user_id=uid) for uid in dict.fromkeys(participant_ids)
        ]
        db.add(chat)
        await db.flush()
        return chat

    async def find_direct(
        self, db: AsyncSession, *, user_id: uuid.UUID, other_id: uuid.UUID
    ) -> Chat | None:
        result = await db.execute(
            select(Chat)
            .where(
                Chat.is_group.is_(False),
                Chat.id.in_(_chats_of(user_id)),
                Chat.id.in_(_chats_of(other_id)),
            )
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_for_user(self, db: AsyncSession, *, user_id: uuid.UUID) -> list[Chat]:
        result = await db.execute(
            select(Chat)
            .where(Chat.id.in_(_chats_of(user_id)))
            .order_by(Chat.updated_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_administered(self, db: AsyncSession, *, user_id: uuid.UUID) -> list[Chat]:
        result = await db.execute(
            select(Chat)
            .where(Chat.group_admin_id == user_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ── Participants ──────────────────────────────────────────────────────────

    async def add_participant(
        self, db: AsyncSession, *, chat_id: uuid.UUID, user_id: uuid.UUID
    ) -> ChatParticipant:
        participant = ChatParticipant(chat_id=chat_id, user_id=user_id)
        db.add(participant)
        await db.flush()
        return participant

    async def remove_participant(
        self, db: AsyncSession, *, chat_id: uuid.UUID, user_id: uuid.UUID
    ) -> ChatParticipant | None:
        result = await db.execute(
            select(ChatParticipant).where(
                ChatParticipant.chat_id == chat_id,
                ChatParticipant.user_id == user_id,
            )
        )
        participant = result.scalar_one_or_none()
        if participant is None:
            return None
        await db.delete(participant)
        await db.flush()
        return participant

    # ── Messages ──────────────────────────────────────────────────────────────

    async def create_message(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        sender_id: uuid.UUID,
        content: str,
    ) -> Message:
        message = Message(chat_id=chat_id, sender_id=sender_id, content=content)
        db.add(message)
        await db.flush()
        return message

    async def get_message(self, db: AsyncSession, message_id: uuid.UUID) -> Message | None:
        result = await db.execute(
            select(Message)
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_messages(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Message], int]:
        """Oldest first, so a page reads top to bottom."""
        total = (
            await db.execute(
                select(func.count()).select_from(Message).where(Message.chat_id == chat_id)
            )
        ).scalar_one()
        result = await db.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def latest_messages(
        self, db: AsyncSession, *, chat_ids: list[uuid.UUID]
    ) -> dict[uuid.UUID, Message]:
        if not chat_ids:
            return {}
        newest = (
            select(Message.chat_id, func.max(Message.created_at).label("created_at"))
            .where(Message.chat_id.in_(chat_ids))
            .group_by(Message.chat_id)
            .subquery()
        )
        result = await db.execute(
            select(Message)
            .join(
                newest,
                and_(
                    Message.chat_id == newest.c.chat_id,
                    Message.created_at == newest.c.created_at,
                ),
            )
            .execution_options(populate_existing=True)
        )
        return {m.chat_id: m for m in result.scalars().all()}

    async def mark_read(
        self, db: AsyncSession, *, chat_id: uuid.UUID, user_id: uuid.UUID
    ) -> int:
        """Add a receipt for every message in the chat the user has not read yet."""
        already_read = exists().where(
            MessageReceipt.message_id == Message.id,
            MessageReceipt.user_id == user_id,
        )
        result = await db.execute(
            select(Message.id).where(
                Message.chat_id == chat_id,
                or_(Message.sender_id.is_(None), Message.sender_id != user_id),
                ~already_read,
            )
        )
        unread = list(result.scalars().all())
        db.add_all(MessageReceipt(message_id=mid, user_id=user_id) for mid in unread)
        await db.flush()
        return len(unread)


crud_chat = CRUDChat(Chat)
