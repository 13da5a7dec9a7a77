"""
Feed routes.
Posts are listed newest first; private posts are only ever shown to their author.
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from nexushub.core.dependencies import CurrentUser, DBSession, Pagination
from nexushub.models.post import Post
from nexushub.schemas.pagination import PaginatedResponse
from nexushub.schemas.post import (
    PostCommentCreate,
    PostCommentsUpdate,
    PostCreate,
    PostLikeUpdate,
    PostRead,
    PostShareCreate,
)
from nexushub.services.feed_service import feed_service

router = APIRouter(prefix="/posts", tags=["Feed"])


def _page(posts: list[Post], total: int, paging: Pagination) -> PaginatedResponse[PostRead]:
    return PaginatedResponse(
        items=[PostRead.model_validate(p) for p in posts],
        total=total,
        page=paging.page,
        size=paging.size,
    )


@router.post(
    "",
    response_model=PostRead,
    status_code=status.HTTP_201_CREATED,
    summary="Publish a post",
)
async def create_post(post_in: PostCreate, current_user: CurrentUser, db: DBSession) -> PostRead:
    post = await feed_service.create_post(db, post_in=post_in, current_user=current_user)
    return PostRead.model_validate(post)


@router.get("", response_model=PaginatedResponse[PostRead], summary="The feed")
async def list_feed(
    current_user: CurrentUser,
    db: DBSession,
    paging: Pagination,
    tag: str | None = Query(default=None, max_length=100),
) -> PaginatedResponse[PostRead]:
    posts, total = await feed_service.list_feed(
        db, current_user=current_user, tag=tag, skip=paging.skip, limit=paging.size
    )
    return _page(posts, total, paging)


@router.get("/search", response_model=PaginatedResponse[PostRead], summary="Search posts")
async def search_posts(
    current_user: CurrentUser,
    db: DBSession,
    paging: Pagination,
    query: str = Query(min_length=1, max_length=200),
) -> PaginatedResponse[PostRead]:
    posts, total = await feed_service.search_posts(
        db, term=query, current_user=current_user, skip=paging.skip, limit=paging.size
    )
    return _page(posts, total, paging)


@router.get(
    "/user/{user_id}",
    response_model=PaginatedResponse[PostRead],
    summary="Posts by one user",
)
async def list_user_posts(
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: DBSession,
    paging: Pagination,
) -> PaginatedResponse[PostRead]:
    posts, total = await feed_service.list_user_posts(
        db, author_id=user_id, current_user=current_user, skip=paging.skip, limit=paging.size
    )
    return _page(posts, total, paging)


@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a post (author only)",
)
async def delete_post(post_id: uuid.UUID, current_user: CurrentUser, db: DBSession) -> None:
    await feed_service.delete_post(db, post_id=post_id, current_user=current_user)


@router.post("/{post_id}/like", response_model=PostLikeUpdate, summary="Like or unlike")
async def toggle_like(
    post_id: uuid.UUID, current_user: CurrentUser, db: DBSession
) -> PostLikeUpdate:
    return await feed_service.toggle_like(db, post_id=post_id, current_user=current_user)


@router.post(
    "/{post_id}/comment",
    response_model=PostCommentsUpdate,
    status_code=status.HTTP_201_CREATED,
    summary="Comment on a post",
)
async def add_comment(
    post_id: uuid.UUID,
    comment_in: PostCommentCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> PostCommentsUpdate:
    return await feed_service.add_comment(
        db, post_id=post_id, content=comment_in.content, current_user=current_user
    )


@router.post(
    "/{post_id}/share",
    response_model=PostRead,
    status_code=status.HTTP_201_CREATED,
    summary="Share a post to your own feed",
)
async def share_post(
    post_id: uuid.UUID,
    share_in: PostShareCreate,
    current_user: CurrentUser,
    db: DBSession,
) -> PostRead:
    post = await feed_service.share_post(
        db, post_id=post_id, content=share_in.content, current_user=current_user
    )
    return PostRead.model_validate(post)
