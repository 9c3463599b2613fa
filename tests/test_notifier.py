"""
Tests for e-mail notifications.
"""
from unittest.mock import MagicMock

import requests

from social_planner.models.post import Post
from social_planner.notifier import RESEND_URL, Notifier


def _post():
    return Post(
        id="p1",
        user_id="owner@example.com",
        caption="hello",
        platforms_facebook=True,
        schedule_date="2025-01-02",
        schedule_time="10:00",
        approval_status={"requested_by": "requester@example.com", "approver": "boss@example.com"},
    )


def _notifier(session):
    notifier = Notifier(session=session)
    notifier.api_key = "re_test"
    return notifier


def test_unconfigured_notifier_only_logs():
    session = MagicMock()
    notifier = Notifier(session=session)
    notifier.api_key = None

    assert notifier.notify_approval_requested(_post(), "boss@example.com") is False
    session.post.assert_not_called()


def test_approval_request_goes_to_approver():
    session = MagicMock()
    assert _notifier(session).notify_approval_requested(_post(), "boss@example.com") is True

    args, kwargs = session.post.call_args
    assert args[0] == RESEND_URL
    assert kwargs["json"]["to"] == ["boss@example.com"]
    assert "2025-01-02 10:00" in kwargs["json"]["text"]
    assert kwargs["timeout"]


def test_rejection_goes_to_requester_with_reason():
    session = MagicMock()
    _notifier(session).notify_approval_decision(_post(), approved=False, reason="off brand")

    payload = session.post.call_args.kwargs["json"]
    assert payload["to"] == ["requester@example.com"]
    assert "off brand" in payload["text"]


def test_published_summary_lists_each_platform():
    session = MagicMock()
    results = {
        "facebook": {"success": True},
        "linkedin": {"success": False, "error": "LinkedIn not connected"},
    }
    _notifier(session).notify_published(_post(), results)

    payload = session.post.call_args.kwargs["json"]
    assert payload["to"] == ["owner@example.com"]
    assert "facebook: published" in payload["text"]
    assert "linkedin: failed (LinkedIn not connected)" in payload["text"]


def test_delivery_failure_is_swallowed():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("smtp down")
    assert _notifier(session).notify_published(_post(), {}) is False
