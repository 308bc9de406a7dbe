from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, List

from models.actors import ActorRole
from models.leaves import LeaveStatus, ParentApprovalStatus


class CreateLeave(BaseModel):
    reason: str
    type: str
    out_date: date
    in_date: date
    out_time: Optional[str] = None
    in_time: Optional[str] = None


class Decision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


class LeaveDecision(BaseModel):
    decision: str = Field(
        ...,
        description="Checked against Decision by the workflow, so an unknown value is a 400 ValidationError rather than a 422",
    )
    reason: Optional[str] = None


class LeaveFilter(BaseModel):
    status: Optional[LeaveStatus] = None
    skip: int = Field(0, ge=0)
    limit: int = Field(50, ge=1, le=100)


class HistoryEntryView(BaseModel):
    status: LeaveStatus
    role: ActorRole
    updated_by: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime


class StudentSummary(BaseModel):
    id: str
    name: str = "Unknown Student"
    roll_number: str = "N/A"
    room: str = "N/A"


class LeaveView(BaseModel):
    id: str
    reason: str
    type: str
    out_date: date
    in_date: date
    out_time: Optional[str] = None
    in_time: Optional[str] = None
    status: LeaveStatus
    parent_approval_status: ParentApprovalStatus
    parent_approved_at: Optional[datetime] = None
    parent_rejection_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    status_history: List[HistoryEntryView] = Field(default_factory=list)
    # supervisor only
    student: Optional[StudentSummary] = None
    approved_by: Optional[str] = None
    parent_approved_by: Optional[str] = None


class LeaveResponse(BaseModel):
    success: bool = True
    message: str
    leave: LeaveView


class LeaveList(BaseModel):
    success: bool = True
    leaves: List[LeaveView] = Field(
        ...,
        description="newest first"
    )
    skip: int
    limit: int


class LeavesCount(BaseModel):
    leave_count: int
    status_counts: Dict[str, int]

    class Config:
        json_schema_extra = {
            "example": {
                "leave_count": 4,
                "status_counts": {
                    "PendingParent": 1,
                    "ApprovedByParent": 1,
                    "Approved": 2,
                }
            }
        }
