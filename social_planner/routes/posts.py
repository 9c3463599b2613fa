"""
Posts routes: save drafts, schedule, publish now, list, edit and delete.
"""
from fastapi import APIRouter, Depends
from typing import List, Optional

from ..models.user import User
from ..auth import get_required_user
from ..schemas.posts import PostPayload, PostUpdate, PostResponse, PublishResponse
from ..worker.lifecycle import PostLifecycle
from ..responses import success
from .deps import get_lifecycle

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.get("", response_model=List[PostResponse])
def list_posts(
    status: Optional[str] = None,
    all_users: bool = False,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """List the current user's posts; admins may pass all_users=true."""
    return lifecycle.list_posts(current_user, status=status, all_users=all_users)


@router.post("/drafts", response_model=PostResponse)
def save_draft(
    payload: PostPayload,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    return lifecycle.submit_draft(payload, current_user)


@router.post("/schedule", response_model=PostResponse)
def schedule_post(
    payload: PostPayload,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """Save a post as scheduled; the scheduler publishes it once due."""
    return lifecycle.schedule(payload, current_user)


@router.post("/publish", response_model=PublishResponse)
def publish_now(
    payload: PostPayload,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """Save the post and publish it to every enabled platform right away."""
    outcome = lifecycle.publish_now(payload, current_user)
    return PublishResponse(
        success=outcome.success,
        results=outcome.results,
        post=PostResponse.model_validate(outcome.post),
    )


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: str,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    return lifecycle.get_post(post_id, current_user)


@router.patch("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: str,
    changes: PostUpdate,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    """Edit a post while it is still a draft or awaiting approval."""
    return lifecycle.update_post(post_id, changes, current_user)


@router.delete("/{post_id}")
def delete_post(
    post_id: str,
    lifecycle: PostLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_required_user),
):
    lifecycle.delete_post(post_id, current_user)
    return success({"id": post_id}, message="Post deleted")
