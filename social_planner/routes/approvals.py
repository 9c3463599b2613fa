"""
Approvals routes: send a post for approval, the approver's inbox, approve and reject.
"""
from fastapi import APIRouter, Depends
from typing import List

from ..models.user import User
from ..auth import get_required_user
from ..schemas.approval import SendForApprovalRequest, ApproveRequest, RejectRequest
from ..schemas.posts import PostResponse
from ..worker.lifecycle import PostLifecycle
from ..responses import success
from .deps import get_lifecycle

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.post("", response_model=PostResponse)
def send_for_approval(
    request: SendForApprovalRequest,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    return lifecycle.send_for_approval(request, current_user, request.approver, request.note)


@router.get("/pending", response_model=List[PostResponse])
def pending_approvals(
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """Posts waiting on the current user's decision, oldest first."""
    return lifecycle.pending_for(current_user)


@router.post("/{post_id}/approve", response_model=PostResponse)
def approve_post(
    post_id: str,
    request: ApproveRequest = ApproveRequest(),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """
    Approve a pending post, optionally overriding its due date/time.

    A post whose due time has already passed is published immediately.
    """
    return lifecycle.approve(
        post_id,
        current_user.email,
        schedule_date=request.schedule_date,
        schedule_time=request.schedule_time,
    )


@router.post("/{post_id}/reject")
def reject_post(
    post_id: str,
    request: RejectRequest = RejectRequest(),
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """Reject a pending post; the post and its media are deleted."""
    lifecycle.reject(post_id, current_user.email, reason=request.reason)
    return success({"id": post_id, "deleted": True}, message="Post rejected")
