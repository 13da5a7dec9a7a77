"""
Feed CRUD operations: posts, likes, comments and shares.
"""
from __future__ import annotations

import uuid

from sqlalchemy import String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select

from nexushub.crud.base import CRUDBase
from nexushub.models.post import Post, PostComment, PostLike, PostShare


def _visible_to(viewer_id: uuid.UUID) -> ColumnElement[bool]:
    return or_(Post.visibility == "public", Post.author_id == viewer_id)


class CRUDPost(CRUDBase[Post]):

    async def create_post(
        self,
        db: AsyncSession,
        *,
        author_id: uuid.UUID,
        content: str,
        tags: list[str] | None = None,
        visibility: str = "public",
        project_id: uuid.UUID | None = None,
        location: str | None = None,
        shared_post_id: uuid.UUID | None = None,
    ) -> Post:
        post = Post(
            author_id=author_id,
            content=content,
            tags=list(tags or []),
            visibility=visibility,
            project_id=project_id,
            location=location,
            shared_post_id=shared_post_id,
        )
        db.add(post)
        await db.flush()
        return post

    async def _page(
        self, db: AsyncSession, query: Select, *, skip: int, limit: int
    ) -> tuple[list[Post], int]:
        total = (
            await db.execute(select(func.count()).select_from(query.subquery()))
        ).scalar_one()
        result = await db.execute(
            query.order_by(Post.created_at.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def list_feed(
        self,
        db: AsyncSession,
        *,
        viewer_id: uuid.UUID,
        tag: str | None = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        """Public posts plus the viewer's own, newest first."""
        query = select(Post).where(_visible_to(viewer_id))
        if tag:
            # tags are a JSON list; match the quoted element in its text form
            query = query.where(cast(Post.tags, String).contains(f'"{tag}"', autoescape=True))
        return await self._page(db, query, skip=skip, limit=limit)

    async def list_by_author(
        self,
        db: AsyncSession,
        *,
        author_id: uuid.UUID,
        viewer_id: uuid.UUID,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        """An author's posts; others do not see the private ones."""
        query = select(Post).where(Post.author_id == author_id)
        if author_id != viewer_id:
            query = query.where(Post.visibility != "private")
        return await self._page(db, query, skip=skip, limit=limit)

    async def search(
        self,
        db: AsyncSession,
        *,
        viewer_id: uuid.UUID,
        term: str,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Post], int]:
        query = select(Post).where(
            _visible_to(viewer_id),
            or_(
                Post.content.icontains(term, autoescape=True),
                cast(Post.tags, String).icontains(term, autoescape=True),
            ),
        )
        return await self._page(db, query, skip=skip, limit=limit)

    # ── Likes, comments, shares ───────────────────────────────────────────────

    async def get_like(
        self, db: AsyncSession, *, post_id: uuid.UUID, user_id: uuid.UUID
    ) -> PostLike | None:
        result = await db.execute(
            select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def add_like(
        self, db: AsyncSession, *, post_id: uuid.UUID, user_id: uuid.UUID
    ) -> PostLike:
        like = PostLike(post_id=post_id, user_id=user_id)
        db.add(like)
        await db.flush()
        return like

    async def remove_like(self, db: AsyncSession, *, like: PostLike) -> None:
        await db.delete(like)
        await db.flush()

    async def add_comment(
        self, db: AsyncSession, *, post_id: uuid.UUID, user_id: uuid.UUID, content: str
    ) -> PostComment:
        comment = PostComment(post_id=post_id, user_id=user_id, content=content)
        db.add(comment)
        await db.flush()
        return comment

    async def add_share(
        self, db: AsyncSession, *, post_id: uuid.UUID, user_id: uuid.UUID
    ) -> PostShare:
        share = PostShare(post_id=post_id, user_id=user_id)
        db.add(share)
        await db.flush()
        return share


crud_post = CRUDPost(Post)
