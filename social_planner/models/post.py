"""
Post model: the single source of truth for the publishing lifecycle.
"""
from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, JSON, Boolean
from datetime import datetime, timezone
from ..database import Base


class PostStatus(str, Enum):
    """Lifecycle status of a post.

    Transitions:
        draft -> pending_approval -> scheduled -> published
                                               -> failed -> scheduled
        draft/pending_approval/scheduled -> published (post now)
    Rejected posts are deleted, never stored.
    """

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(64), primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)  # owner e-mail
    caption = Column(Text, default="")

    # Legacy single media: a durable URL or an inline data URI
    media = Column(Text, nullable=True)
    # [{type, url | data, file_name, mime_type, file_size}]
    media_items = Column(JSON, default=list)

    platforms_facebook = Column(Boolean, default=False)
    platforms_linkedin = Column(Boolean, default=False)
    linkedin_organization_id = Column(String(255), nullable=True)

    # Business-timezone wall clock, "YYYY-MM-DD" and "HH:MM"
    schedule_date = Column(String(10), nullable=True, index=True)
    schedule_time = Column(String(5), nullable=True)

    status = Column(String(20), default=PostStatus.DRAFT.value, index=True)
    approval_status = Column(JSON, nullable=True)

    results = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    @property
    def platforms(self) -> dict:
        return {
            "facebook": bool(self.platforms_facebook),
            "linkedin": bool(self.platforms_linkedin),
        }

    @property
    def enabled_platforms(self) -> list:
        return [name for name, enabled in self.platforms.items() if enabled]

    @property
    def due_key(self) -> str:
        """Sortable "YYYY-MM-DD HH:MM" key of the due time, or "" if unset."""
        if not self.schedule_date or not self.schedule_time:
            return ""
        return f"{self.schedule_date} {self.schedule_time}"


NEW = None  # a post not yet in the store

ALLOWED_TRANSITIONS = {
    NEW: {PostStatus.DRAFT, PostStatus.PENDING_APPROVAL, PostStatus.SCHEDULED,
          PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.DRAFT: {PostStatus.DRAFT, PostStatus.PENDING_APPROVAL, PostStatus.SCHEDULED,
                       PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.PENDING_APPROVAL: {PostStatus.PENDING_APPROVAL, PostStatus.SCHEDULED,
                                  PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.SCHEDULED: {PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.FAILED: {PostStatus.SCHEDULED},
    PostStatus.PUBLISHED: set(),
}

EDITABLE_STATUSES = {PostStatus.DRAFT, PostStatus.PENDING_APPROVAL}


def can_transition(current, target) -> bool:
    """Whether `current` (a status, its value, or None for new) may move to `target`."""
    current = PostStatus(current) if current is not None else NEW
    return PostStatus(target) in ALLOWED_TRANSITIONS[current]
