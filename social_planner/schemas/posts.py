from pydantic import BaseModel, field_validator
from typing import Any, Dict, List, Optional
from datetime import date, datetime


def normalize_date(value: Optional[str]) -> Optional[str]:
    """Accept YYYY-MM-DD only."""
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        raise ValueError("schedule_date must be YYYY-MM-DD")


def normalize_time(value: Optional[str]) -> Optional[str]:
    """Accept HH:MM or HH:MM:SS, store HH:MM."""
    if value in (None, ""):
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValueError("schedule_time must be HH:MM")


class MediaItemIn(BaseModel):
    """One media item: a durable `url` or an inline `data` URI."""
    type: Optional[str] = None  # image, video, document
    url: Optional[str] = None
    data: Optional[str] = None
    file_name: Optional[str] = None
    mime_type: Optional[str] = None
    file_size: Optional[int] = None


class Platforms(BaseModel):
    facebook: bool = False
    linkedin: bool = False


class ScheduleFields(BaseModel):
    schedule_date: Optional[str] = None
    schedule_time: Optional[str] = None

    @field_validator("schedule_date")
    @classmethod
    def _check_date(cls, v):
        return normalize_date(v)

    @field_validator("schedule_time")
    @classmethod
    def _check_time(cls, v):
        return normalize_time(v)


class PostPayload(ScheduleFields):
    """Post content submitted by a user action (draft, schedule, post now)."""
    id: Optional[str] = None
    caption: str = ""
    media: Optional[str] = None  # legacy single media
    media_items: List[MediaItemIn] = []
    platforms: Platforms = Platforms()
    linkedin_organization_id: Optional[str] = None


class PostUpdate(ScheduleFields):
    caption: Optional[str] = None
    media: Optional[str] = None
    media_items: Optional[List[MediaItemIn]] = None
    platforms: Optional[Platforms] = None
    linkedin_organization_id: Optional[str] = None


class PostResponse(BaseModel):
    id: str
    user_id: str
    caption: Optional[str] = None
    media: Optional[str] = None
    media_items: Optional[List[Dict[str, Any]]] = None
    platforms: Platforms
    linkedin_organization_id: Optional[str] = None
    schedule_date: Optional[str] = None
    schedule_time: Optional[str] = None
    status: str
    approval_status: Optional[Dict[str, Any]] = None
    results: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublishResponse(BaseModel):
    success: bool
    results: Dict[str, Any]
    post: PostResponse
