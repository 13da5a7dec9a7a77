"""
Activity recorder.
Appends immutable Activity rows describing user actions on project-scoped
entities. Recording never breaks the mutation that triggered it.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.crud.activity import crud_activity
from nexushub.models.activity import Activity

logger = logging.getLogger(__name__)


class ActivityService:

    async def record(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        user_id: uuid.UUID,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        description: str,
        meta: dict[str, Any] | None = None,
    ) -> Activity | None:
        """
        Write one activity entry inside a SAVEPOINT.
        On failure the savepoint is rolled back, the error is logged and
        None is returned.
        """
        try:
            async with db.begin_nested():
                entry = Activity(
                    project_id=project_id,
                    user_id=user_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    description=description,
                    meta=meta or {},
                )
                return await crud_activity.create(db, activity=entry)
        except Exception:
            logger.exception(
                "Failed to record activity: project_id=%s user_id=%s action=%s entity_type=%s",
                project_id,
                user_id,
                action,
                entity_type,
            )
            return None


activity_service = ActivityService()
