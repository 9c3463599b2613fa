from .post import Post, PostStatus, MediaKind
from .user import User
from .connection import PlatformConnection

__all__ = [
    "Post",
    "PostStatus",
    "MediaKind",
    "User",
    "PlatformConnection",
]
