"""
Feed service: posts, likes, comments, shares and search.

Events go to the shared feed room, except for private posts: those only
reach their author's personal room.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.core import permissions
from nexushub.core.exceptions import NotFoundException
from nexushub.crud.post import crud_post
from nexushub.crud.project import crud_project
from nexushub.models.post import Post
from nexushub.models.user import User
from nexushub.schemas.post import (
    PostCommentRead,
    PostCommentsUpdate,
    PostCreate,
    PostLikeRead,
    PostLikeUpdate,
    PostRead,
)
from nexushub.services.events import FEED_ROOM, EventSink, queue_event, ws_manager

logger = logging.getLogger(__name__)


class FeedService:

    def __init__(self, events: EventSink) -> None:
        self.events = events

    async def _get_or_404(self, db: AsyncSession, post_id: uuid.UUID) -> Post:
        post = await crud_post.get(db, post_id)
        if post is None:
            raise NotFoundException("Post", str(post_id))
        return post

    async def _visible_or_404(
        self, db: AsyncSession, post_id: uuid.UUID, viewer: User
    ) -> Post:
        """Private posts of others answer 404, as if they did not exist."""
        post = await self._get_or_404(db, post_id)
        if not permissions.can_view_post(viewer.id, permissions.post_access(post)):
            raise NotFoundException("Post", str(post_id))
        return post

    def _announce(self, db: AsyncSession, post: Post, event: str, payload: Any) -> None:
        room = FEED_ROOM if post.visibility != "private" else str(post.author_id)
        queue_event(db, self.events, room, event, payload)

    # ── Posts ─────────────────────────────────────────────────────────────────

    async def create_post(
        self, db: AsyncSession, *, post_in: PostCreate, current_user: User
    ) -> Post:
        if post_in.project_id is not None:
            project = await crud_project.get(db, post_in.project_id)
            if project is None:
                raise NotFoundException("Project", str(post_in.project_id))
            permissions.can_view_project(
                current_user.id, permissions.project_access(project)
            ).enforce()

        created = await crud_post.create_post(
            db,
            author_id=current_user.id,
            content=post_in.content,
            tags=post_in.tags,
            visibility=post_in.visibility,
            project_id=post_in.project_id,
            location=post_in.location,
        )
        post = await self._get_or_404(db, created.id)
        logger.info("Post %s created by %s", post.id, current_user.id)
        self._announce(db, post, "new_post", PostRead.model_validate(post))
        return post

    async def list_feed(
        self,
        db: AsyncSession,
        *,
        current_user: User,
        tag: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        return await crud_post.list_feed(
            db, viewer_id=current_user.id, tag=tag, skip=skip, limit=limit
        )

    async def list_user_posts(
        self,
        db: AsyncSession,
        *,
        author_id: uuid.UUID,
        current_user: User,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        return await crud_post.list_by_author(
            db, author_id=author_id, viewer_id=current_user.id, skip=skip, limit=limit
        )

    async def search_posts(
        self,
        db: AsyncSession,
        *,
        term: str,
        current_user: User,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        return await crud_post.search(
            db, viewer_id=current_user.id, term=term, skip=skip, limit=limit
        )

    async def delete_post(
        self, db: AsyncSession, *, post_id: uuid.UUID, current_user: User
    ) -> None:
        post = await self._visible_or_404(db, post_id, current_user)
        permissions.can_delete_post(
            current_user.id, permissions.post_access(post)
        ).enforce()

        await db.delete(post)
        await db.flush()
        logger.info("Post %s deleted by %s", post_id, current_user.id)
        self._announce(db, post, "post_deleted", {"post_id": post_id})

    # ── Reactions ─────────────────────────────────────────────────────────────

    async def toggle_like(
        self, db: AsyncSession, *, post_id: uuid.UUID, current_user: User
    ) -> PostLikeUpdate:
        post = await self._visible_or_404(db, post_id, current_user)
        existing = await crud_post.get_like(db, post_id=post.id, user_id=current_user.id)
        if existing is not None:
            await crud_post.remove_like(db, like=existing)
        else:
            await crud_post.add_like(db, post_id=post.id, user_id=current_user.id)

        post = await self._get_or_404(db, post_id)
        update = PostLikeUpdate(
            post_id=post.id,
            liked=existing is None,
            likes=[PostLikeRead.model_validate(like) for like in post.likes],
        )
        self._announce(db, post, "post_like_update", update)
        return update

    async def add_comment(
        self,
        db: AsyncSession,
        *,
        post_id: uuid.UUID,
        content: str,
        current_user: User,
    ) -> PostCommentsUpdate:
        post = await self._visible_or_404(db, post_id, current_user)
        await crud_post.add_comment(
            db, post_id=post.id, user_id=current_user.id, content=content
        )

        post = await self._get_or_404(db, post_id)
        update = PostCommentsUpdate(
            post_id=post.id,
            comments=[PostCommentRead.model_validate(c) for c in post.comments],
        )
        self._announce(db, post, "new_comment", update)
        return update

    async def share_post(
        self,
        db: AsyncSession,
        *,
        post_id: uuid.UUID,
        content: str,
        current_user: User,
    ) -> Post:
        """The share is a new post by the sharer, with the original's visibility."""
        original = await self._visible_or_404(db, post_id, current_user)
        created = await crud_post.create_post(
            db,
            author_id=current_user.id,
            content=content,
            visibility=original.visibility,
            shared_post_id=original.id,
        )
        await crud_post.add_share(db, post_id=original.id, user_id=current_user.id)

        shared = await self._get_or_404(db, created.id)
        self._announce(
            db,
            shared,
            "post_shared",
            {"original_post_id": original.id, "post": PostRead.model_validate(shared)},
        )
        return shared


feed_service = FeedService(ws_manager)
