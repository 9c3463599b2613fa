from .approval import SendForApprovalRequest, ApproveRequest, RejectRequest
from .auth import UserCreate, LoginRequest, RefreshRequest, TokenResponse, UserResponse, ConnectionSave
from .posts import PostPayload, PostUpdate, PostResponse, PublishResponse, MediaItemIn, Platforms

__all__ = [
    "SendForApprovalRequest", "ApproveRequest", "RejectRequest",
    "UserCreate", "LoginRequest", "RefreshRequest", "TokenResponse", "UserResponse", "ConnectionSave",
    "PostPayload", "PostUpdate", "PostResponse", "PublishResponse", "MediaItemIn", "Platforms",
]
