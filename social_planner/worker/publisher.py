"""
Publish Orchestrator

Drives one post through a publish attempt:
1. Load the post and check it may move to published
2. Resolve its media once
3. Run every enabled platform adapter concurrently
4. Aggregate per-platform outcomes; any success publishes the post
5. Persist status, results and timestamp, then notify on success

Adapter failures never escape: each becomes an entry in the result map.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..errors import (
    TIMEOUT,
    AlreadyPublishedError,
    AuthorizationError,
    InvalidTransitionError,
    PlatformError,
    PublishInProgressError,
)
from ..logging_config import publisher_logger as logger
from ..models.post import Post, PostStatus, can_transition
from ..notifier import Notifier
from ..storage import ObjectStorage
from ..store import ConnectionInfo, PostStore, TokenStore
from .media_resolver import MediaResolver, ResolvedMedia
from .platform_upload import PlatformPublisher, PublishRequest


@dataclass
class PublishOutcome:
    post: Post
    results: Dict[str, dict]

    @property
    def success(self) -> bool:
        return any(result.get("success") for result in self.results.values())


def failure_entry(platform: str, kind: str, message: str) -> dict:
    return {"success": False, "platform": platform, "error": message, "error_type": kind}


def summarize_failures(results: Dict[str, dict]) -> str:
    if not results:
        return "No platforms enabled for this post"
    parts = [f"{name}: {result.get('error')}" for name, result in sorted(results.items())]
    return "All platforms failed. " + "; ".join(parts)


class PublishOrchestrator:
    """Publish posts to their enabled platforms"""

    # Post ids being published by this process
    _in_flight: set = set()
    _in_flight_lock = threading.Lock()

    def __init__(
        self,
        db: Session,
        publishers: Dict[str, PlatformPublisher],
        storage: ObjectStorage,
        notifier: Notifier,
        publish_timeout: Optional[float] = None,
    ):
        self.posts = PostStore(db)
        self.tokens = TokenStore(db)
        self.resolver = MediaResolver(storage)
        self.publishers = publishers
        self.notifier = notifier
        self.publish_timeout = publish_timeout or get_settings().publish_timeout_seconds

    # ============================================================
    # IN-FLIGHT GUARD
    # ============================================================

    @classmethod
    def _claim(cls, post_id: str) -> bool:
        with cls._in_flight_lock:
            if post_id in cls._in_flight:
                return False
            cls._in_flight.add(post_id)
            return True

    @classmethod
    def _release(cls, post_id: str):
        with cls._in_flight_lock:
            cls._in_flight.discard(post_id)

    # ============================================================
    # PUBLISH
    # ============================================================

    def publish(
        self,
        post_id: str,
        allowed_from: Optional[Iterable[PostStatus]] = None,
        require_approval: bool = False,
    ) -> PublishOutcome:
        """
        Publish one post and record the outcome.

        Args:
            post_id: Post to publish
            allowed_from: Statuses the post must currently be in
                (defaults to every status that may move to published)
            require_approval: Refuse posts whose approval flag is not true
                (scheduler path); an explicit rejection is always refused

        Returns:
            PublishOutcome with the updated post and per-platform results
        """
        if not self._claim(post_id):
            raise PublishInProgressError(post_id)
        try:
            post = self.posts.get_or_raise(post_id)
            self._check_publishable(post, allowed_from, require_approval)
            return self._publish(post)
        finally:
            self._release(post_id)

    def _check_publishable(self, post: Post, allowed_from, require_approval: bool):
        if post.status == PostStatus.PUBLISHED.value:
            raise AlreadyPublishedError(post.id)
        if not can_transition(post.status, PostStatus.PUBLISHED):
            raise InvalidTransitionError(post.id, post.status, PostStatus.PUBLISHED.value)
        if allowed_from is not None and post.status not in {PostStatus(s).value for s in allowed_from}:
            raise InvalidTransitionError(post.id, post.status, PostStatus.PUBLISHED.value)

        approval = post.approval_status
        if approval is not None:
            approved = approval.get("approved")
            if approved is False or (require_approval and approved is not True):
                raise AuthorizationError(f"Post '{post.id}' has not been approved")

    def _publish(self, post: Post) -> PublishOutcome:
        platforms = post.enabled_platforms
        logger.info("Publishing post", post_id=post.id, status=post.status, platforms=platforms)

        media = self.resolver.resolve(post) if platforms else ResolvedMedia()
        request = PublishRequest(
            post_id=post.id,
            caption=post.caption or "",
            target_id=post.linkedin_organization_id,
        )
        connections = {name: self.tokens.get_connection(name) for name in platforms}

        results = self._fan_out(request, media, platforms, connections)
        outcome_ok = any(result["success"] for result in results.values())

        post = self.posts.update(
            post.id,
            status=(PostStatus.PUBLISHED if outcome_ok else PostStatus.FAILED).value,
            results=results,
            error=None if outcome_ok else summarize_failures(results),
            published_at=datetime.now(timezone.utc) if outcome_ok else None,
        )

        failed = sorted(name for name, result in results.items() if not result["success"])
        if outcome_ok:
            logger.info("Post published", post_id=post.id, failed_platforms=failed)
            self.notifier.notify_published(post, results)
        else:
            logger.warning("Post failed on every platform", post_id=post.id, error_message=post.error)

        return PublishOutcome(post=post, results=results)

    # ============================================================
    # FAN-OUT
    # ============================================================

    def _run_adapter(self, name: str, request: PublishRequest, media: ResolvedMedia,
                     connection: Optional[ConnectionInfo]) -> dict:
        publisher = self.publishers.get(name)
        if publisher is None:
            return failure_entry(name, "unsupported", f"Unsupported platform: {name}")
        try:
            response = publisher.publish(request, media, connection)
        except PlatformError as e:
            logger.warning("Platform publish failed", post_id=request.post_id, platform=name,
                           error_type=e.kind, error_message=e.message)
            return failure_entry(name, e.kind, e.message)
        except Exception as e:
            logger.error("Unexpected platform error", error=e, post_id=request.post_id, platform=name)
            return failure_entry(name, "unexpected", str(e))

        return {"success": True, "platform": name, "response": response}

    @staticmethod
    def _report_late(post_id: str, name: str, future):
        """Log an adapter that finished after its result was recorded as a timeout."""
        if future.cancelled():
            return
        result = future.result()
        if result.get("success"):
            logger.error("Platform published after timeout, record says failed",
                         post_id=post_id, platform=name)
        else:
            logger.info("Timed out platform publish finished with failure",
                        post_id=post_id, platform=name, error_type=result.get("error_type"))

    def _fan_out(self, request: PublishRequest, media: ResolvedMedia, platforms: List[str],
                 connections: Dict[str, Optional[ConnectionInfo]]) -> Dict[str, dict]:
        if not platforms:
            return {}

        pool = ThreadPoolExecutor(max_workers=len(platforms), thread_name_prefix=f"publish-{request.post_id}")
        try:
            futures = {
                name: pool.submit(self._run_adapter, name, request, media, connections.get(name))
                for name in platforms
            }
            deadline = time.monotonic() + self.publish_timeout
            results = {}
            for name, future in futures.items():
                try:
                    results[name] = future.result(timeout=max(0.0, deadline - time.monotonic()))
                except FuturesTimeout:
                    logger.warning("Platform publish timed out", post_id=request.post_id, platform=name)
                    future.add_done_callback(partial(self._report_late, request.post_id, name))
                    results[name] = failure_entry(
                        name, TIMEOUT, f"No response within {self.publish_timeout}s"
                    )
            return results
        finally:
            pool.shutdown(wait=False, cancel_futures=True)
