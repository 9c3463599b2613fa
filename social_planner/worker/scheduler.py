"""
Publishing Scheduler

Background loop that publishes scheduled posts once their due time
(business timezone) has arrived:
- One tick at a time; a tick that finds another still running is skipped
- Due posts are processed earliest first, one at a time
- Only approved posts are published from here
- A failing post is logged and never stops the rest of the tick
- A tick stops picking up new posts once its time budget is spent;
  the rest are left for the next tick
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..database import SessionLocal
from ..errors import PlannerError
from ..logging_config import scheduler_logger as logger
from ..models.post import PostStatus
from ..notifier import Notifier, get_notifier
from ..storage import ObjectStorage, get_storage
from ..store import PostStore
from .clock import Clock, business_key, business_now, is_due
from .platform_upload import get_platform_publishers
from .publisher import PublishOrchestrator


class PublishingScheduler:
    """Publish due scheduled posts on a fixed interval"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        publishers_factory: Callable[[], Dict] = get_platform_publishers,
        storage: Optional[ObjectStorage] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = business_now,
        interval_seconds: Optional[float] = None,
        tick_budget_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.session_factory = session_factory
        self.publishers_factory = publishers_factory
        self.storage = storage
        self.notifier = notifier
        self.clock = clock
        self.interval_seconds = interval_seconds or settings.scheduler_interval_seconds
        self.tick_budget_seconds = tick_budget_seconds or settings.scheduler_tick_budget_seconds

        self.running = False
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_tick: Optional[dict] = None
        self._last_tick_at: Optional[datetime] = None

    # ============================================================
    # TICK
    # ============================================================

    def tick(self) -> Optional[dict]:
        """
        Run one pass over the scheduled posts.

        Returns:
            Summary counts for the pass, or None if a pass was
            already running
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.info("Previous tick still running, skipping")
            return None
        try:
            summary = self._run_tick()
        finally:
            self._tick_lock.release()

        self._last_tick = summary
        self._last_tick_at = datetime.now(timezone.utc)
        if summary["checked"]:
            logger.info("Scheduler tick complete", **summary)
        return summary

    def _run_tick(self) -> dict:
        summary = {"checked": 0, "published": 0, "failed": 0, "skipped": 0, "deferred": 0}
        now = self.clock()
        started = time.monotonic()

        db = self.session_factory()
        try:
            posts = PostStore(db)
            orchestrator = PublishOrchestrator(
                db,
                publishers=self.publishers_factory(),
                storage=self.storage or get_storage(),
                notifier=self.notifier or get_notifier(),
            )
            due = posts.list_due(PostStatus.SCHEDULED.value, before_or_at=business_key(now))
            pending_ids = [post.id for post in due]

            for index, post_id in enumerate(pending_ids):
                if time.monotonic() - started > self.tick_budget_seconds:
                    summary["deferred"] = len(pending_ids) - index
                    logger.warning("Tick budget exhausted, deferring posts", deferred=summary["deferred"])
                    break

                summary["checked"] += 1
                try:
                    post = posts.get_by_id(post_id)
                    if post is None or post.status != PostStatus.SCHEDULED.value:
                        summary["skipped"] += 1
                        continue
                    approval = post.approval_status
                    if approval is not None and approval.get("approved") is not True:
                        logger.debug("Skipping unapproved post", post_id=post_id)
                        summary["skipped"] += 1
                        continue
                    if not is_due(post.schedule_date, post.schedule_time, now):
                        summary["skipped"] += 1
                        continue

                    outcome = orchestrator.publish(
                        post_id,
                        allowed_from={PostStatus.SCHEDULED},
                        require_approval=True,
                    )
                    summary["published" if outcome.success else "failed"] += 1
                except PlannerError as e:
                    db.rollback()
                    logger.warning("Scheduled post not publishable", post_id=post_id,
                                   error_code=e.error_code, error_message=e.message)
                    summary["skipped"] += 1
                except Exception as e:
                    db.rollback()
                    logger.error("Scheduled publish failed", error=e, post_id=post_id)
                    summary["failed"] += 1
        finally:
            db.close()

        return summary

    # ============================================================
    # BACKGROUND LOOP
    # ============================================================

    def _loop(self):
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error("Scheduler tick crashed", error=e)
            self._stop_event.wait(self.interval_seconds)

    def start_background(self) -> bool:
        """Start ticking in a background thread (non-blocking for FastAPI)"""
        if self.running:
            return False

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name="publishing-scheduler")
        self._thread.start()
        logger.info("Publishing scheduler started", interval_seconds=self.interval_seconds)
        return True

    def stop(self, timeout: Optional[float] = 5.0) -> bool:
        """Stop ticking; waits up to `timeout` for a running tick to finish"""
        if not self.running:
            return False

        self.running = False
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
        logger.info("Publishing scheduler stopped")
        return True

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "tick_in_progress": self._tick_lock.locked(),
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "last_tick": self._last_tick,
        }


# Global scheduler instance (initialized lazily)
_scheduler: Optional[PublishingScheduler] = None


def get_scheduler() -> PublishingScheduler:
    """Get or create the global publishing scheduler"""
    global _scheduler
    if _scheduler is None:
        _scheduler = PublishingScheduler()
    return _scheduler
