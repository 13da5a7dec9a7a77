"""
Activity CRUD operations.
Activities are append-only; there is no update path.
"""
from __future__ import annotations

import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.models.activity import Activity


class CRUDActivity:

    async def create(self, db: AsyncSession, *, activity: Activity) -> Activity:
        db.add(activity)
        await db.flush()
        return activity

    async def list_by_project(
        self,
        db: AsyncSession,
        *,
        project_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Activity], int]:
        count_result = await db.execute(
            select(func.count())
            .select_from(Activity)
            .where(Activity.project_id == project_id)
        )
        total = count_result.scalar_one()

        result = await db.execute(
            select(Activity)
            .where(Activity.project_id == project_id)
            .order_by(Activity.created_at.desc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def delete_for_project(self, db: AsyncSession, *, project_id: uuid.UUID) -> None:
        await db.execute(
            delete(Activity)
            .where(Activity.project_id == project_id)
            .execution_options(synchronize_session=False)
        )


crud_activity = CRUDActivity()
