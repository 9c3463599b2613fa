"""
E-mail notifications for approval requests, decisions and publications.

Delivery goes through the Resend HTTP API when RESEND_API_KEY is set and
is only logged otherwise. A notification never fails the operation that
triggered it: every public method logs and swallows its own errors.
"""
from functools import wraps
from typing import Dict, Optional

import requests

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("notifier")

RESEND_URL = "https://api.resend.com/emails"


def fire_and_forget(func):
    @wraps(func)
    def wrapper(*args, **kwargs) -> bool:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"{func.__name__} failed", error=e)
            return False
    return wrapper


class Notifier:
    """Fire-and-forget e-mail notifier"""

    def __init__(self, session: Optional[requests.Session] = None):
        settings = get_settings()
        self.api_key = settings.resend_api_key
        self.sender = settings.email_from
        self.client_url = settings.client_url
        self.timeout = settings.platform_timeout_seconds
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _send(self, to: str, subject: str, text: str) -> bool:
        if not to:
            logger.warning("Notification skipped, no recipient", subject=subject)
            return False
        if not self.is_configured:
            logger.info("Notification (delivery disabled)", to=to, subject=subject)
            return False

        response = self.session.post(
            RESEND_URL,
            json={"from": self.sender, "to": [to], "subject": subject, "text": text},
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        logger.info("Notification sent", to=to, subject=subject)
        return True

    @staticmethod
    def _describe(post) -> str:
        platforms = ", ".join(post.enabled_platforms) or "none"
        when = post.due_key or "immediately"
        return f"Caption: {post.caption or ''}\nPlatforms: {platforms}\nScheduled: {when}"

    @staticmethod
    def _requester(post) -> str:
        return (post.approval_status or {}).get("requested_by") or post.user_id

    @fire_and_forget
    def notify_approval_requested(self, post, approver: str) -> bool:
        note = (post.approval_status or {}).get("note") or ""
        text = (
            f"{self._requester(post)} asked you to approve a post.\n\n{self._describe(post)}\n"
            f"Note: {note}\n\nReview it at {self.client_url}"
        )
        return self._send(approver, "New approval request", text)

    @fire_and_forget
    def notify_approval_decision(self, post, approved: bool, reason: Optional[str] = None) -> bool:
        if approved:
            subject = "Your post was approved"
            text = f"Your post was approved.\n\n{self._describe(post)}"
        else:
            subject = "Your post was rejected"
            text = f"Your post was rejected.\n\nReason: {reason or 'not given'}\n\n{self._describe(post)}"
        return self._send(self._requester(post), subject, text)

    @fire_and_forget
    def notify_published(self, post, results: Dict[str, dict]) -> bool:
        lines = []
        for platform, result in sorted(results.items()):
            if result.get("success"):
                lines.append(f"{platform}: published")
            else:
                lines.append(f"{platform}: failed ({result.get('error')})")
        text = f"Your post was published.\n\n{self._describe(post)}\n\n" + "\n".join(lines)
        return self._send(post.user_id, "Your post was published", text)


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    """Get or create the global notifier instance"""
    global _notifier
    if _notifier is None:
        _notifier = Notifier()
    return _notifier
