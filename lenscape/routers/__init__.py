"""HTTP and WebSocket routers, in the order the application mounts them."""
from fastapi import APIRouter

from .auth import router as auth_router
from .explore import router as explore_router
from .marketplace import router as marketplace_router
from .messages import router as messages_router
from .notifications import router as notifications_router
from .posts import router as posts_router
from .profiles import router as profiles_router
from .realtime import router as realtime_router

ALL_ROUTERS: tuple[APIRouter, ...] = (
    auth_router,
    profiles_router,
    posts_router,
    explore_router,
    messages_router,
    notifications_router,
    marketplace_router,
    realtime_router,
)

__all__ = [
    "ALL_ROUTERS",
    "auth_router",
    "explore_router",
    "marketplace_router",
    "messages_router",
    "notifications_router",
    "posts_router",
    "profiles_router",
    "realtime_router",
]
