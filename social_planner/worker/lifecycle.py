"""
Post lifecycle: user actions and the approval gate.

User actions (save draft, send for approval, schedule, post now, edit,
delete) and approver decisions (approve, reject) are the only entry
points that move a post between states outside the publisher. Every
transition is checked against the state table in models.post.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..errors import (
    AlreadyPublishedError,
    AuthorizationError,
    InvalidTransitionError,
    PostNotFoundError,
    StorageError,
    ValidationError,
)
from ..logging_config import get_logger
from ..models.post import EDITABLE_STATUSES, Post, PostStatus, can_transition
from ..models.user import User
from ..notifier import Notifier
from ..schemas.posts import MediaItemIn, PostPayload, PostUpdate, normalize_date, normalize_time
from ..storage import ObjectStorage, is_data_uri, parse_data_uri
from ..store import PostStore
from .clock import Clock, business_now, is_overdue
from .publisher import PublishOrchestrator, PublishOutcome

logger = get_logger("lifecycle")


class PostLifecycle:
    """Create and move posts through draft, approval, scheduling and publishing"""

    def __init__(
        self,
        db: Session,
        orchestrator: PublishOrchestrator,
        storage: ObjectStorage,
        notifier: Notifier,
        clock: Clock = business_now,
    ):
        self.posts = PostStore(db)
        self.orchestrator = orchestrator
        self.storage = storage
        self.notifier = notifier
        self.clock = clock

    # ============================================================
    # ACCESS
    # ============================================================

    @staticmethod
    def _check_owner(post: Post, user: User):
        if post.user_id != user.email and not user.is_admin:
            raise AuthorizationError("Only the owner or an admin can change this post")

    def get_post(self, post_id: str, user: User) -> Post:
        post = self.posts.get_or_raise(post_id)
        approver = (post.approval_status or {}).get("approver")
        if post.user_id != user.email and approver != user.email and not user.is_admin:
            # Hide other users' posts entirely
            raise PostNotFoundError(post_id)
        return post

    def list_posts(self, user: User, status: Optional[str] = None, all_users: bool = False) -> List[Post]:
        owner = None if (all_users and user.is_admin) else user.email
        return self.posts.list_by_owner(owner, status)

    def pending_for(self, user: User) -> List[Post]:
        return self.posts.list_pending_for_approver(user.email)

    # ============================================================
    # MEDIA
    # ============================================================

    def _store_inline(self, data: str, owner: str):
        """Upload an inline data URI; returns (url, mime) or (None, mime) when kept inline."""
        try:
            mime_type, content = parse_data_uri(data)
        except ValueError as e:
            raise ValidationError(f"Invalid media payload: {e}")

        if not self.storage.is_configured:
            return None, mime_type
        try:
            return self.storage.put(content, mime_type, owner), mime_type
        except StorageError as e:
            logger.warning("Media upload failed, keeping inline payload", owner=owner, error_message=str(e))
            return None, mime_type

    def _persist_media_items(self, items: List[MediaItemIn], owner: str) -> List[dict]:
        persisted = []
        for item in items:
            record = item.model_dump(exclude_none=True)
            if item.url:
                record.pop("data", None)
            elif item.data:
                url, mime_type = self._store_inline(item.data, owner)
                if url:
                    record["url"] = url
                    record.pop("data")
                record.setdefault("mime_type", mime_type)
            else:
                raise ValidationError("Each media item needs a url or inline data")
            persisted.append(record)
        return persisted

    def _persist_legacy_media(self, media: Optional[str], owner: str) -> Optional[str]:
        if not media or not is_data_uri(media):
            return media
        url, _ = self._store_inline(media, owner)
        return url or media

    def _media_urls(self, post: Post) -> List[str]:
        urls = [item["url"] for item in (post.media_items or []) if item.get("url")]
        if post.media and not is_data_uri(post.media):
            urls.append(post.media)
        return urls

    # ============================================================
    # UPSERT
    # ============================================================

    def _fields_from_payload(self, payload, owner: str) -> dict:
        fields = {}
        data = payload.model_dump(exclude_unset=True, exclude={"id", "approver", "note"})
        for key in ("caption", "linkedin_organization_id", "schedule_date", "schedule_time"):
            if key in data:
                fields[key] = data[key]
        if "platforms" in data and payload.platforms is not None:
            fields["platforms_facebook"] = payload.platforms.facebook
            fields["platforms_linkedin"] = payload.platforms.linkedin
        if "media_items" in data and payload.media_items is not None:
            fields["media_items"] = self._persist_media_items(payload.media_items, owner)
        if "media" in data:
            fields["media"] = self._persist_legacy_media(payload.media, owner)
        return fields

    def _upsert(self, payload: PostPayload, user: User, target: PostStatus, **extra) -> Post:
        """Create or edit a post and move it to `target`."""
        existing = self.posts.get_by_id(payload.id) if payload.id else None

        if existing is None:
            if payload.id and self.posts.get_by_id(payload.id, include_deleted=True):
                raise ValidationError(f"Post id '{payload.id}' belongs to a deleted post")
            if not can_transition(None, target):
                raise InvalidTransitionError(payload.id or "new", None, target.value)
            fields = {"media_items": []}
            fields.update(self._fields_from_payload(payload, user.email))
            fields.update(extra)
            post = Post(
                id=payload.id or uuid.uuid4().hex,
                user_id=user.email,
                status=target.value,
                **fields,
            )
            post = self.posts.create(post)
            logger.info("Post created", post_id=post.id, status=post.status, owner=user.email)
            return post

        self._check_owner(existing, user)
        if existing.status == PostStatus.PUBLISHED.value:
            raise AlreadyPublishedError(existing.id)
        if not can_transition(existing.status, target):
            raise InvalidTransitionError(existing.id, existing.status, target.value)

        fields = self._fields_from_payload(payload, existing.user_id)
        post = self.posts.update(existing.id, status=target.value, **fields, **extra)
        logger.info("Post updated", post_id=post.id, status=post.status)
        return post

    # ============================================================
    # USER ACTIONS
    # ============================================================

    def submit_draft(self, payload: PostPayload, user: User) -> Post:
        return self._upsert(payload, user, PostStatus.DRAFT)

    def send_for_approval(self, payload: PostPayload, user: User, approver: Optional[str],
                          note: Optional[str] = None) -> Post:
        if not approver or not approver.strip():
            raise ValidationError("An approver is required to send a post for approval")

        approval = {
            "requested_by": user.email,
            "approver": approver.strip(),
            "note": note,
            "approved": None,
            "requested_at": datetime.now(timezone.utc).isoformat(),
            "approved_at": None,
            "rejection_reason": None,
        }
        post = self._upsert(payload, user, PostStatus.PENDING_APPROVAL, approval_status=approval)
        self.notifier.notify_approval_requested(post, approval["approver"])
        return post

    def schedule(self, payload: PostPayload, user: User) -> Post:
        existing = self.posts.get_by_id(payload.id) if payload.id else None
        if existing is not None and existing.status == PostStatus.PENDING_APPROVAL.value:
            raise InvalidTransitionError(
                existing.id, existing.status, PostStatus.SCHEDULED.value,
                f"Post '{existing.id}' is awaiting approval and is scheduled by its approver",
            )

        date_ = payload.schedule_date or (existing.schedule_date if existing else None)
        time_ = payload.schedule_time or (existing.schedule_time if existing else None)
        if not date_ or not time_:
            raise ValidationError("A schedule date and time are required")
        platforms = payload.platforms if "platforms" in payload.model_fields_set or existing is None else None
        enabled = (platforms.facebook or platforms.linkedin) if platforms else bool(existing.enabled_platforms)
        if not enabled:
            raise ValidationError("Select at least one platform")

        return self._upsert(payload, user, PostStatus.SCHEDULED)

    def publish_now(self, payload: PostPayload, user: User) -> PublishOutcome:
        """Save the post, then publish it synchronously."""
        existing = self.posts.get_by_id(payload.id) if payload.id else None
        if existing is None:
            post = self._upsert(payload, user, PostStatus.DRAFT)
        else:
            self._check_owner(existing, user)
            if existing.status == PostStatus.PUBLISHED.value:
                raise AlreadyPublishedError(existing.id)
            if existing.status in {s.value for s in EDITABLE_STATUSES}:
                fields = self._fields_from_payload(payload, existing.user_id)
                post = self.posts.update(existing.id, **fields)
            else:
                post = existing

        return self.orchestrator.publish(post.id)

    def update_post(self, post_id: str, changes: PostUpdate, user: User) -> Post:
        post = self.posts.get_or_raise(post_id)
        self._check_owner(post, user)
        if post.status not in {s.value for s in EDITABLE_STATUSES}:
            raise InvalidTransitionError(
                post.id, post.status, post.status,
                f"Post '{post.id}' can only be edited while draft or pending approval",
            )
        return self.posts.update(post.id, **self._fields_from_payload(changes, post.user_id))

    def delete_post(self, post_id: str, user: User) -> None:
        post = self.posts.get_or_raise(post_id)
        self._check_owner(post, user)
        self.posts.soft_delete(post.id)

    # ============================================================
    # APPROVAL GATE
    # ============================================================

    def _pending_for_approver(self, post_id: str, approver: str, target: PostStatus) -> Post:
        post = self.posts.get_or_raise(post_id)
        if post.status != PostStatus.PENDING_APPROVAL.value:
            raise InvalidTransitionError(post.id, post.status, target.value)
        if (post.approval_status or {}).get("approver") != approver:
            raise AuthorizationError("Only the designated approver can decide on this post")
        return post

    def approve(self, post_id: str, approver: str, schedule_date: Optional[str] = None,
                schedule_time: Optional[str] = None) -> Post:
        """
        Approve a pending post.

        The post is scheduled when its due time is still ahead; when the
        due time has already passed (or none is set) it is published
        within this call instead of waiting for the next scheduler tick.
        """
        post = self._pending_for_approver(post_id, approver, PostStatus.SCHEDULED)

        try:
            date_ = normalize_date(schedule_date) or post.schedule_date
            time_ = normalize_time(schedule_time) or post.schedule_time
        except ValueError as e:
            raise ValidationError(str(e))

        approval = dict(post.approval_status or {})
        approval.update(
            approved=True,
            approved_by=approver,
            approved_at=datetime.now(timezone.utc).isoformat(),
        )
        publish_immediately = not (date_ and time_) or is_overdue(date_, time_, self.clock())

        post = self.posts.update(
            post.id,
            approval_status=approval,
            schedule_date=date_,
            schedule_time=time_,
            status=post.status if publish_immediately else PostStatus.SCHEDULED.value,
        )
        logger.info("Post approved", post_id=post.id, approver=approver,
                    publish_immediately=publish_immediately, due=post.due_key)
        self.notifier.notify_approval_decision(post, approved=True)

        if publish_immediately:
            post = self.orchestrator.publish(
                post.id, allowed_from={PostStatus.PENDING_APPROVAL}, require_approval=True,
            ).post
        return post

    def reject(self, post_id: str, approver: str, reason: Optional[str] = None) -> None:
        """Reject a pending post: notify the requester, then delete the post and its media."""
        post = self._pending_for_approver(post_id, approver, PostStatus.PUBLISHED)

        approval = dict(post.approval_status or {})
        approval.update(approved=False, rejection_reason=reason)
        post.approval_status = approval
        self.notifier.notify_approval_decision(post, approved=False, reason=reason)

        urls = self._media_urls(post)
        if urls and self.storage.is_configured:
            self.storage.delete_many(urls)
        self.posts.delete(post.id)
        logger.info("Post rejected and deleted", post_id=post_id, approver=approver, media_purged=len(urls))
