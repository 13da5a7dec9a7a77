"""002_feed_and_chat

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 00:00:00.000000

Adds the social feed and chat tables:
  - posts, post_likes, post_comments, post_shares
  - chats, chat_participants, messages, message_receipts
"""
from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | None = None
depends_on: str | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _user_fk(name: str, *, ondelete: str = "CASCADE", **kwargs: object) -> sa.Column:
    return sa.Column(
        name,
        sa.Uuid(),
        sa.ForeignKey("users.id", ondelete=ondelete),
        **kwargs,
    )


def upgrade() -> None:
    # ── posts ─────────────────────────────────────────────────────────────────
    op.create_table(
        "posts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("author_id", nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column(
            "visibility",
            sa.Enum("public", "connections", "private", name="post_visibility_enum"),
            nullable=False,
            server_default="public",
        ),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column(
            "shared_post_id",
            sa.Uuid(),
            sa.ForeignKey("posts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("ix_posts_author_id_created_at", "posts", ["author_id", "created_at"])
    op.create_index("ix_posts_visibility_created_at", "posts", ["visibility", "created_at"])
    op.create_index("ix_posts_shared_post_id", "posts", ["shared_post_id"])

    op.create_table(
        "post_likes",
        sa.Column(
            "post_id",
            sa.Uuid(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        _user_fk("user_id", primary_key=True),
        _created_at(),
    )
    op.create_index("ix_post_likes_user_id", "post_likes", ["user_id"])

    op.create_table(
        "post_comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "post_id",
            sa.Uuid(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_post_comments_post_id", "post_comments", ["post_id"])

    op.create_table(
        "post_shares",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "post_id",
            sa.Uuid(),
            sa.ForeignKey("posts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("user_id", nullable=False),
        _created_at(),
    )
    op.create_index("ix_post_shares_post_id", "post_shares", ["post_id"])

    # ── chats ─────────────────────────────────────────────────────────────────
    op.create_table(
        "chats",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("is_group", sa.Boolean(), nullable=False, server_default="false"),
        _user_fk("group_admin_id", ondelete="SET NULL", nullable=True),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("ix_chats_updated_at", "chats", ["updated_at"])

    op.create_table(
        "chat_participants",
        sa.Column(
            "chat_id",
            sa.Uuid(),
            sa.ForeignKey("chats.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        _user_fk("user_id", primary_key=True),
        _created_at("joined_at"),
    )
    op.create_index("ix_chat_participants_user_id", "chat_participants", ["user_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "chat_id",
            sa.Uuid(),
            sa.ForeignKey("chats.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("sender_id", ondelete="SET NULL", nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_messages_chat_id_created_at", "messages", ["chat_id", "created_at"])

    op.create_table(
        "message_receipts",
        sa.Column(
            "message_id",
            sa.Uuid(),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        _user_fk("user_id", primary_key=True),
        _created_at("read_at"),
    )


def downgrade() -> None:
    op.drop_table("message_receipts")
    op.drop_table("messages")
    op.drop_table("chat_participants")
    op.drop_table("chats")
    op.drop_table("post_shares")
    op.drop_table("post_comments")
    op.drop_table("post_likes")
    op.drop_table("posts")
    op.execute("DROP TYPE IF EXISTS post_visibility_enum")
