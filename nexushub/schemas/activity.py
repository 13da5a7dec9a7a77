"""
Activity Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from nexushub.schemas.user import UserReadPublic


class ActivityRead(BaseModel):
    id: uuid.UUID
    project_id: uuid.UUID
    user_id: uuid.UUID | None
    action: str
    entity_type: str
    entity_id: uuid.UUID
    description: str
    meta: dict[str, Any]
    created_at: datetime
    user: UserReadPublic | None = None

    model_config = {"from_attributes": True}
