"""
Domain exceptions for the post lifecycle and publishing pipeline.

Hierarchy:
    Exception
    +-- PlannerError (rejected requests, rendered as HTTP errors)
    |   +-- ValidationError
    |   +-- AuthorizationError
    |   +-- PostNotFoundError
    |   +-- PublishInProgressError
    |   +-- InvalidTransitionError
    |       +-- AlreadyPublishedError
    +-- PlatformError (per-platform publishing failure)
    +-- StorageError (object storage failure)
"""
from typing import Dict, Optional


class PlannerError(Exception):
    """Base class for errors that reject a caller's request."""

    status_code = 400
    error_code = "BAD_REQUEST"

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(PlannerError):
    """Missing or malformed input."""

    status_code = 422
    error_code = "VALIDATION_ERROR"


class AuthorizationError(PlannerError):
    """Caller is not allowed to perform this transition."""

    status_code = 403
    error_code = "FORBIDDEN"


class PostNotFoundError(PlannerError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, post_id: str):
        self.post_id = post_id
        super().__init__(f"Post '{post_id}' not found")


class InvalidTransitionError(PlannerError):
    """Requested state change is not in the lifecycle graph."""

    status_code = 409
    error_code = "INVALID_TRANSITION"

    def __init__(self, post_id: str, current: Optional[str], target: str, message: Optional[str] = None):
        self.post_id = post_id
        self.current = current
        self.target = target
        super().__init__(
            message or f"Post '{post_id}' cannot move from {current or 'new'} to {target}",
            details={"current_status": current, "target_status": target},
        )


class AlreadyPublishedError(InvalidTransitionError):
    error_code = "ALREADY_PUBLISHED"

    def __init__(self, post_id: str):
        super().__init__(post_id, "published", "published", f"Post '{post_id}' is already published")


# Platform error kinds
NOT_CONNECTED = "not_connected"
NO_TARGET = "no_target"
UPLOAD_FAILED = "upload_failed"
POST_FAILED = "post_failed"
TIMEOUT = "timeout"


class PlatformError(Exception):
    """Failure of one platform adapter, tagged with platform and kind."""

    def __init__(self, platform: str, kind: str, message: str):
        self.platform = platform
        self.kind = kind
        self.message = message
        super().__init__(f"[{platform}] {message}")


class StorageError(Exception):
    """Object storage is unavailable or an operation on it failed."""


class PublishInProgressError(PlannerError):
    status_code = 409
    error_code = "PUBLISH_IN_PROGRESS"

    def __init__(self, post_id: str):
        self.post_id = post_id
        super().__init__(f"Post '{post_id}' is already being published")
