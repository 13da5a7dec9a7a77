"""
Page envelope for the team browser, the activity feed, posts and messages.
"""
from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, computed_field

ItemT = TypeVar("ItemT")


class PaginatedResponse(BaseModel, Generic[ItemT]):
    items: list[ItemT]
    total: int
    page: int
    size: int

    @computed_field  # type: ignore[misc]
    @property
    def pages(self) -> int:
        return -(-self.total // self.size) if self.size else 0
