"""
Activity ORM model.
Append-only record of user actions on project-scoped entities. Rows are never
updated and disappear only when their project is deleted; an actor who
deletes their account leaves user_id empty.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nexushub.db.base import Base, utcnow

ACTIVITY_ACTIONS = (
    "created", "updated", "deleted", "completed", "commented", "assigned", "joined", "left",
)
ACTIVITY_ENTITY_TYPES = ("project", "task", "comment", "team")


class Activity(Base):
    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    action: Mapped[str] = mapped_column(
        Enum(*ACTIVITY_ACTIONS, name="activity_action_enum"), nullable=False
    )
    entity_type: Mapped[str] = mapped_column(
        Enum(*ACTIVITY_ENTITY_TYPES, name="activity_entity_type_enum"), nullable=False
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    user: Mapped["User | None"] = relationship("User", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        Index("ix_activities_project_id_created_at", "project_id", "created_at"),
        Index("ix_activities_user_id_created_at", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Activity id={self.id} project_id={self.project_id} "
            f"action={self.action!r} entity_type={self.entity_type!r}>"
        )
