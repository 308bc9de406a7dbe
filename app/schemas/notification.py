from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from pytz import UTC

from models.actors import ActorRole


class NotificationType(str, Enum):
    LEAVE_REQUEST = "leave_request"
    LEAVE_AWAITING_WARDEN = "leave_awaiting_warden"
    LEAVE_REJECTED_BY_PARENT = "leave_rejected_by_parent"
    LEAVE_APPROVED = "leave_approved"
    LEAVE_REJECTED = "leave_rejected"
    LEAVE_CANCELLED = "leave_cancelled"


class NotificationCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    institution_id: str
    audience: ActorRole
    student_id: str  # residents and guardians are addressed through the student
    type: NotificationType
    message: str
    related_id: Optional[str]
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
