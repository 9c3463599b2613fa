"""
Post Store and Token Store over a SQLAlchemy session.

Every post query excludes tombstoned rows unless asked otherwise.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .errors import PostNotFoundError
from .logging_config import db_logger
from .models.connection import PlatformConnection
from .models.post import Post


class PostStore:
    """Durable record of every post and its state."""

    def __init__(self, db: Session):
        self.db = db

    def _query(self, include_deleted: bool = False):
        query = self.db.query(Post)
        if not include_deleted:
            query = query.filter(Post.deleted_at.is_(None))
        return query

    def create(self, post: Post) -> Post:
        self.db.add(post)
        self.db.commit()
        self.db.refresh(post)
        db_logger.debug("Post created", post_id=post.id, status=post.status)
        return post

    def get_by_id(self, post_id: str, include_deleted: bool = False) -> Optional[Post]:
        return self._query(include_deleted).filter(Post.id == post_id).first()

    def get_or_raise(self, post_id: str) -> Post:
        post = self.get_by_id(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        return post

    def update(self, post_id: str, **fields: Any) -> Post:
        """Apply a partial update to a single post and commit."""
        post = self.get_or_raise(post_id)
        for key, value in fields.items():
            setattr(post, key, value)
        self.db.commit()
        self.db.refresh(post)
        return post

    def delete(self, post_id: str) -> bool:
        """Physically remove a post."""
        post = self.get_by_id(post_id, include_deleted=True)
        if post is None:
            return False
        self.db.delete(post)
        self.db.commit()
        db_logger.info("Post deleted", post_id=post_id)
        return True

    def soft_delete(self, post_id: str) -> bool:
        post = self.get_by_id(post_id)
        if post is None:
            return False
        post.deleted_at = datetime.now(timezone.utc)
        self.db.commit()
        db_logger.info("Post tombstoned", post_id=post_id)
        return True

    def soft_delete_by_owner(self, user_id: str) -> int:
        now = datetime.now(timezone.utc)
        count = (
            self._query()
            .filter(Post.user_id == user_id)
            .update({Post.deleted_at: now}, synchronize_session=False)
        )
        self.db.commit()
        db_logger.info("Posts tombstoned for owner", user_id=user_id, count=count)
        return count

    def list_due(self, status: str, before_or_at: Optional[str] = None) -> List[Post]:
        """Posts in `status`, earliest due first.

        `before_or_at` is a "YYYY-MM-DD HH:MM" business-time key; posts
        due later than it are excluded.
        """
        query = self._query().filter(Post.status == status)
        if before_or_at is not None:
            query = query.filter(
                Post.schedule_date.isnot(None),
                Post.schedule_time.isnot(None),
                (Post.schedule_date + " " + Post.schedule_time) <= before_or_at,
            )
        return query.order_by(
            Post.schedule_date.asc(),
            Post.schedule_time.asc(),
            Post.created_at.asc(),
        ).all()

    def list_by_owner(self, user_id: Optional[str] = None, status: Optional[str] = None) -> List[Post]:
        """Posts of one owner, or of everyone when `user_id` is None."""
        query = self._query()
        if user_id is not None:
            query = query.filter(Post.user_id == user_id)
        if status:
            query = query.filter(Post.status == status)
        return query.order_by(Post.created_at.desc()).all()

    def list_pending_for_approver(self, approver: str) -> List[Post]:
        posts = self._query().filter(Post.status == "pending_approval").order_by(Post.created_at.asc()).all()
        return [
            p for p in posts
            if (p.approval_status or {}).get("approver") == approver
        ]


@dataclass
class ConnectionInfo:
    """Read-only snapshot of a platform connection handed to adapters."""
    platform: str
    credential: str
    targets: List[Dict[str, Any]] = field(default_factory=list)
    connected_at: Optional[datetime] = None


class TokenStore:
    """Platform-wide connections, one record per platform."""

    def __init__(self, db: Session):
        self.db = db

    def get_connection(self, platform: str) -> Optional[ConnectionInfo]:
        row = self.db.query(PlatformConnection).filter(PlatformConnection.platform == platform).first()
        if row is None:
            return None
        return ConnectionInfo(
            platform=row.platform,
            credential=row.credential,
            targets=list(row.targets or []),
            connected_at=row.connected_at,
        )

    def save_connection(self, platform: str, credential: str, targets: List[Dict[str, Any]]) -> ConnectionInfo:
        row = self.db.query(PlatformConnection).filter(PlatformConnection.platform == platform).first()
        if row is None:
            row = PlatformConnection(platform=platform, credential=credential, targets=targets)
            self.db.add(row)
        else:
            row.credential = credential
            row.targets = targets
            row.connected_at = datetime.now(timezone.utc)
        self.db.commit()
        db_logger.info("Platform connection saved", platform=platform, targets=len(targets))
        return self.get_connection(platform)

    def delete_connection(self, platform: str) -> bool:
        deleted = self.db.query(PlatformConnection).filter(PlatformConnection.platform == platform).delete()
        self.db.commit()
        if deleted:
            db_logger.info("Platform connection removed", platform=platform)
        return bool(deleted)
