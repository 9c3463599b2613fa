"""
Tests for the approval workflow: send, inbox, approve and reject.
"""
from unittest.mock import MagicMock

from social_planner.models.post import Post
from social_planner.routes.deps import get_object_storage
from social_planner.main import app
from social_planner.store import PostStore
from social_planner.worker.scheduler import PublishingScheduler

from .conftest import lima_time

APPROVER = "approver@example.com"


def _pending(db, post_id="p1", schedule_date=None, schedule_time=None, **fields):
    fields.setdefault("media_items", [])
    post = Post(
        id=post_id,
        user_id="test@example.com",
        caption="needs review",
        status="pending_approval",
        platforms_facebook=True,
        schedule_date=schedule_date,
        schedule_time=schedule_time,
        approval_status={
            "requested_by": "test@example.com",
            "approver": APPROVER,
            "note": None,
            "approved": None,
        },
        **fields,
    )
    db.add(post)
    db.commit()
    return post


class TestSendForApproval:

    def test_send_for_approval(self, client, auth_headers, notifier):
        response = client.post(
            "/api/approvals",
            headers=auth_headers,
            json={"caption": "check this", "platforms": {"facebook": True},
                  "approver": APPROVER, "note": "launch copy"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending_approval"
        approval = data["approval_status"]
        assert approval["approver"] == APPROVER
        assert approval["requested_by"] == "test@example.com"
        assert approval["note"] == "launch copy"
        assert approval["approved"] is None
        assert ("requested", data["id"], APPROVER) in notifier.sent

    def test_send_without_approver_fails(self, client, auth_headers):
        response = client.post("/api/approvals", headers=auth_headers, json={"caption": "check this"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_draft_can_be_sent_for_approval(self, client, auth_headers):
        client.post("/api/posts/drafts", headers=auth_headers, json={"id": "d1", "caption": "v1"})
        response = client.post("/api/approvals", headers=auth_headers,
                               json={"id": "d1", "caption": "v2", "approver": APPROVER})
        assert response.json()["status"] == "pending_approval"
        assert response.json()["caption"] == "v2"

    def test_pending_inbox(self, client, db, approver_headers, auth_headers):
        _pending(db, "p1")
        _pending(db, "p2")
        response = client.get("/api/approvals/pending", headers=approver_headers)
        assert [p["id"] for p in response.json()] == ["p1", "p2"]

        assert client.get("/api/approvals/pending", headers=auth_headers).json() == []

    def test_approver_can_view_post(self, client, db, approver_headers):
        _pending(db, "p1")
        assert client.get("/api/posts/p1", headers=approver_headers).status_code == 200


class TestApprove:

    def test_only_designated_approver(self, client, db, auth_headers):
        _pending(db, "p1", "2025-01-02", "10:00")
        response = client.post("/api/approvals/p1/approve", headers=auth_headers, json={})
        assert response.status_code == 403
        assert PostStore(db).get_by_id("p1").status == "pending_approval"

    def test_approve_future_post_schedules_it(self, client, db, approver_headers, publishers, notifier):
        _pending(db, "p1", "2025-01-02", "10:00")
        response = client.post("/api/approvals/p1/approve", headers=approver_headers, json={})
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["approval_status"]["approved"] is True
        assert data["approval_status"]["approved_by"] == APPROVER
        assert publishers["facebook"].calls == []
        assert ("decision", "p1", True, None) in notifier.sent

    def test_approve_overdue_post_publishes_immediately(self, client, db, approver_headers, publishers):
        # now is 2025-01-01 09:05 in the business timezone
        _pending(db, "p1", "2025-01-01", "09:00")
        response = client.post("/api/approvals/p1/approve", headers=approver_headers, json={})
        assert response.status_code == 200
        assert response.json()["status"] == "published"
        assert len(publishers["facebook"].calls) == 1

    def test_approve_overdue_post_all_platforms_failing(self, client, db, approver_headers, publishers):
        from social_planner.errors import PlatformError

        publishers["facebook"].error = PlatformError("facebook", "post_failed", "boom")
        _pending(db, "p1", "2025-01-01", "09:00")
        response = client.post("/api/approvals/p1/approve", headers=approver_headers, json={})
        assert response.json()["status"] == "failed"

    def test_approve_without_due_time_publishes_immediately(self, client, db, approver_headers):
        _pending(db, "p1")
        response = client.post("/api/approvals/p1/approve", headers=approver_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "published"

    def test_approve_with_override(self, client, db, approver_headers):
        _pending(db, "p1", "2025-01-01", "08:00")
        response = client.post(
            "/api/approvals/p1/approve",
            headers=approver_headers,
            json={"schedule_date": "2025-01-05", "schedule_time": "12:00"},
        )
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["schedule_date"] == "2025-01-05"
        assert data["schedule_time"] == "12:00"

    def test_approve_due_this_minute_waits_for_scheduler(self, client, db, approver_headers, clock, publishers):
        clock.now = lima_time(2025, 1, 1, 9, 0, 30)
        _pending(db, "p1", "2025-01-01", "09:00")
        response = client.post("/api/approvals/p1/approve", headers=approver_headers, json={})
        assert response.json()["status"] == "scheduled"
        assert publishers["facebook"].calls == []

    def test_approve_non_pending_post(self, client, db, approver_headers):
        db.add(Post(id="p1", user_id="test@example.com", status="draft", media_items=[],
                    approval_status={"approver": APPROVER}))
        db.commit()
        response = client.post("/api/approvals/p1/approve", headers=approver_headers, json={})
        assert response.status_code == 409

    def test_approve_unknown_post(self, client, approver_headers):
        response = client.post("/api/approvals/nope/approve", headers=approver_headers, json={})
        assert response.status_code == 404


class TestReject:

    def test_reject_deletes_post(self, client, db, approver_headers, notifier, session_factory, clock, publishers):
        _pending(db, "p1", "2025-01-01", "09:00")
        response = client.post(
            "/api/approvals/p1/reject",
            headers=approver_headers,
            json={"reason": "off brand"},
        )
        assert response.status_code == 200
        assert response.json()["data"]["deleted"] is True
        assert PostStore(db).get_by_id("p1", include_deleted=True) is None
        assert ("decision", "p1", False, "off brand") in notifier.sent

        scheduler = PublishingScheduler(
            session_factory=session_factory,
            publishers_factory=lambda: publishers,
            storage=MagicMock(),
            notifier=notifier,
            clock=clock,
        )
        assert scheduler.tick()["checked"] == 0

    def test_reject_purges_stored_media(self, client, db, approver_headers):
        storage = MagicMock()
        storage.is_configured = True
        app.dependency_overrides[get_object_storage] = lambda: storage

        _pending(
            db, "p1",
            media="https://cdn.example.com/test@example.com/1-legacy.png",
            media_items=[
                {"type": "image", "url": "https://cdn.example.com/test@example.com/1-a.png"},
                {"type": "image", "data": "data:image/png;base64,AAAA"},
            ],
        )
        response = client.post("/api/approvals/p1/reject", headers=approver_headers, json={})
        assert response.status_code == 200
        storage.delete_many.assert_called_once_with([
            "https://cdn.example.com/test@example.com/1-a.png",
            "https://cdn.example.com/test@example.com/1-legacy.png",
        ])

    def test_reject_by_other_user_refused(self, client, db, auth_headers):
        _pending(db, "p1")
        response = client.post("/api/approvals/p1/reject", headers=auth_headers, json={})
        assert response.status_code == 403
        assert PostStore(db).get_by_id("p1") is not None
