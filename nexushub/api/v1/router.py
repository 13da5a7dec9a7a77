"""
Aggregates all v1 API routers into a single APIRouter.
"""
from __future__ import annotations

from fastapi import APIRouter

from nexushub.api.v1 import (
    auth,
    chats,
    messages,
    oauth,
    posts,
    projects,
    tasks,
    teams,
    users,
    websocket,
)

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(oauth.router)
api_router.include_router(users.router)
api_router.include_router(teams.router)
api_router.include_router(projects.router)
api_router.include_router(tasks.router)
api_router.include_router(posts.router)
api_router.include_router(chats.router)
api_router.include_router(messages.router)
api_router.include_router(websocket.router)
