"""
Chat service: direct and group chats, messages and read receipts.

New messages go to the chat's room ("chat:<id>"); participants subscribe
to it over the WebSocket. Membership changes are announced on the chat
room and on the personal room of the user who was added or removed.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.exceptions import BadRequestException, NotFoundException
from nexushub.crud.chat import crud_chat
from nexushub.crud.user import crud_user
from nexushub.db.base import utcnow
from nexushub.models.chat import Chat, Message
from nexushub.models.user import User
from nexushub.schemas.chat import GroupChatCreate, GroupChatUpdate, MessageRead
from nexushub.services.events import EventSink, chat_room, queue_event, ws_manager

logger = logging.getLogger(__name__)


class ChatService:

    def __init__(self, events: EventSink) -> None:
        self.events = events

    async def _get_or_404(self, db: AsyncSession, chat_id: uuid.UUID) -> Chat:
        chat = await crud_chat.get(db, chat_id)
        if chat is None:
            raise NotFoundException("Chat", str(chat_id))
        return chat

    async def _readable(self, db: AsyncSession, chat_id: uuid.UUID, user: User) -> Chat:
        chat = await self._get_or_404(db, chat_id)
        permissions.can_read_chat(user.id, permissions.chat_access(chat)).enforce()
        return chat

    async def _existing_user(self, db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await crud_user.get(db, user_id)
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    def _announce_membership(
        self, db: AsyncSession, chat: Chat, user_id: uuid.UUID, event: str
    ) -> None:
        payload = {"chat_id": chat.id, "user_id": user_id}
        queue_event(db, self.events, chat_room(chat.id), event, payload)
        queue_event(db, self.events, str(user_id), event, payload)

    # ── Chats ─────────────────────────────────────────────────────────────────

    async def open_direct_chat(
        self, db: AsyncSession, *, user_id: uuid.UUID, current_user: User
    ) -> Chat:
        """Return the 1:1 chat with the user, creating it on first contact."""
        if user_id == current_user.id:
            raise BadRequestException("You cannot open a chat with yourself")
        await self._existing_user(db, user_id)

        chat = await crud_chat.find_direct(db, user_id=current_user.id, other_id=user_id)
        if chat is not None:
            return chat
        created = await crud_chat.create_chat(
            db, participant_ids=[current_user.id, user_id]
        )
        logger.info("Direct chat %s opened by %s", created.id, current_user.id)
        return await self._get_or_404(db, created.id)

    async def list_chats(
        self, db: AsyncSession, *, current_user: User
    ) -> list[tuple[Chat, Message | None]]:
        """The user's chats, most recently active first, with their latest message."""
        chats = await crud_chat.list_for_user(db, user_id=current_user.id)
        latest = await crud_chat.latest_messages(db, chat_ids=[c.id for c in chats])
        return [(chat, latest.get(chat.id)) for chat in chats]

    async def create_group_chat(
        self, db: AsyncSession, *, chat_in: GroupChatCreate, current_user: User
    ) -> Chat:
        others = [uid for uid in dict.fromkeys(chat_in.user_ids) if uid != current_user.id]
        if len(others) < 2:
            raise BadRequestException("A group chat needs at least two other users")
        for uid in others:
            await self._existing_user(db, uid)

        created = await crud_chat.create_chat(
            db,
            participant_ids=[current_user.id, *others],
            is_group=True,
            name=chat_in.name,
            description=chat_in.description,
            admin_id=current_user.id,
        )
        chat = await self._get_or_404(db, created.id)
        for uid in others:
            queue_event(
                db, self.events, str(uid), "chat_added", {"chat_id": chat.id, "user_id": uid}
            )
        logger.info("Group chat %s created by %s", chat.id, current_user.id)
        return chat

    async def update_group_chat(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        chat_in: GroupChatUpdate,
        current_user: User,
    ) -> Chat:
        chat = await self._readable(db, chat_id, current_user)
        permissions.can_manage_group_chat(
            current_user.id, permissions.chat_access(chat)
        ).enforce()

        changes = chat_in.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise BadRequestException("No fields to update")
        await crud_chat.update(db, db_obj=chat, obj_in=changes)
        chat = await self._get_or_404(db, chat_id)
        queue_event(
            db, self.events, chat_room(chat.id), "chat_updated", {"chat_id": chat.id, **changes}
        )
        return chat

    async def add_participant(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> Chat:
        chat = await self._get_or_404(db, chat_id)
        access = permissions.chat_access(chat)
        permissions.can_manage_group_chat(current_user.id, access).enforce()
        await self._existing_user(db, user_id)
        if user_id in access.participant_ids:
            raise BadRequestException("User is already in this chat")

        await crud_chat.add_participant(db, chat_id=chat.id, user_id=user_id)
        self._announce_membership(db, chat, user_id, "chat_added")
        return await self._get_or_404(db, chat_id)

    async def remove_participant(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User,
    ) -> Chat:
        """Admins remove anyone; any participant may leave. A leaving admin hands over."""
        chat = await self._get_or_404(db, chat_id)
        access = permissions.chat_access(chat)
        permissions.can_remove_chat_participant(current_user.id, access, user_id).enforce()
        if user_id not in access.participant_ids:
            raise NotFoundException("Chat participant", str(user_id))

        await crud_chat.remove_participant(db, chat_id=chat.id, user_id=user_id)
        if user_id == chat.group_admin_id:
            await self._hand_over_admin(db, chat, leaving_id=user_id)
        self._announce_membership(db, chat, user_id, "chat_removed")
        return await self._get_or_404(db, chat_id)

    async def _hand_over_admin(
        self, db: AsyncSession, chat: Chat, *, leaving_id: uuid.UUID
    ) -> None:
        """The longest-standing remaining participant becomes admin."""
        successor = next(
            (p.user_id for p in chat.participants if p.user_id != leaving_id), None
        )
        await crud_chat.update(db, db_obj=chat, obj_in={"group_admin_id": successor})
        logger.info("Chat %s admin passed from %s to %s", chat.id, leaving_id, successor)

    async def release_account(self, db: AsyncSession, *, user: User) -> None:
        """Before an account is deleted, pass its group-admin seats on."""
        for chat in await crud_chat.list_administered(db, user_id=user.id):
            await self._hand_over_admin(db, chat, leaving_id=user.id)

    # ── Messages ──────────────────────────────────────────────────────────────

    async def send_message(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        content: str,
        current_user: User,
    ) -> Message:
        chat = await self._readable(db, chat_id, current_user)
        created = await crud_chat.create_message(
            db, chat_id=chat.id, sender_id=current_user.id, content=content
        )
        # listings sort chats by their last activity
        await crud_chat.update(db, db_obj=chat, obj_in={"updated_at": utcnow()})

        message = await crud_chat.get_message(db, created.id)
        if message is None:
            raise NotFoundException("Message", str(created.id))
        queue_event(
            db, self.events, chat_room(chat.id), "new_message", MessageRead.from_message(message)
        )
        return message

    async def list_messages(
        self,
        db: AsyncSession,
        *,
        chat_id: uuid.UUID,
        current_user: User,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Message], int]:
        chat = await self._readable(db, chat_id, current_user)
        return await crud_chat.list_messages(db, chat_id=chat.id, skip=skip, limit=limit)

    async def mark_read(
        self, db: AsyncSession, *, chat_id: uuid.UUID, current_user: User
    ) -> int:
        chat = await self._readable(db, chat_id, current_user)
        marked = await crud_chat.mark_read(db, chat_id=chat.id, user_id=current_user.id)
        if marked:
            queue_event(
                db,
                self.events,
                chat_room(chat.id),
                "messages_read",
                {"chat_id": chat.id, "user_id": current_user.id, "count": marked},
            )
        return marked


chat_service = ChatService(ws_manager)
