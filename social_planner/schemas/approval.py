from pydantic import BaseModel
from typing import Optional

from .posts import PostPayload, ScheduleFields


class SendForApprovalRequest(PostPayload):
    approver: Optional[str] = None  # approver e-mail
    note: Optional[str] = None


class ApproveRequest(ScheduleFields):
    """Optional due date/time override set by the approver."""
    pass


class RejectRequest(BaseModel):
    reason: Optional[str] = None
