from .approvals import router as approvals_router
from .auth import router as auth_router
from .connections import router as connections_router
from .posts import router as posts_router

__all__ = [
    "approvals_router",
    "auth_router",
    "connections_router",
    "posts_router",
]
