"""
Shared repository behaviour for every NexusHub model keyed by a UUID ``id``.
Entity modules subclass CRUDBase and add their own queries.
"""
from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import exists as sql_exists
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from nexushub.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class CRUDBase(Generic[ModelT]):

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    async def get(self, db: AsyncSession, id: uuid.UUID) -> ModelT | None:
        # populate_existing: roster and assignee collections loaded earlier
        # in the request must not shadow rows written since.
        stmt = (
            select(self.model)
            .filter_by(id=id)
            .execution_options(populate_existing=True)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelT,
        obj_in: dict[str, Any],
    ) -> ModelT:
        """Apply already-filtered column values and flush."""
        for column, value in obj_in.items():
            setattr(db_obj, column, value)
        await db.flush()
        return db_obj

    async def remove(self, db: AsyncSession, *, id: uuid.UUID) -> ModelT | None:
        target = await self.get(db, id)
        if target is not None:
            await db.delete(target)
            await db.flush()
        return target

    async def exists(self, db: AsyncSession, **filters: Any) -> bool:
        stmt = select(sql_exists().where(
            *(getattr(self.model, column) == value for column, value in filters.items())
        ))
        return bool((await db.execute(stmt)).scalar())
