from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Tuple

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pytz import UTC

from models.actors import ActorRole


class LeaveStatus(str, Enum):
    PENDING_PARENT = "PendingParent"
    APPROVED_BY_PARENT = "ApprovedByParent"
    REJECTED_BY_PARENT = "RejectedByParent"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    # stored by older releases, never written any more
    LEGACY_PENDING = "Pending"


class ParentApprovalStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class StatusHistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: LeaveStatus
    role: ActorRole
    updated_by: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime


class Leave(BaseModel):
    """An outing request as persisted in the ``leaves`` collection.

    Instances are immutable snapshots: a transition produces a new value
    through ``model_copy`` and the store commits it conditionally on the
    status that was read.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    institution_id: str
    student_id: str
    reason: str
    type: str
    out_date: date
    in_date: date
    out_time: Optional[str] = None
    in_time: Optional[str] = None
    status: LeaveStatus = LeaveStatus.PENDING_PARENT
    parent_approval_status: ParentApprovalStatus = ParentApprovalStatus.PENDING
    parent_approved_by: Optional[str] = None
    parent_approved_at: Optional[datetime] = None
    parent_rejection_reason: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    status_history: Tuple[StatusHistoryEntry, ...] = Field(default_factory=tuple)
    created_at: datetime

    def to_document(self) -> dict:
        document = self.model_dump(mode="python", exclude={"id"})
        document["out_date"] = _date_to_datetime(self.out_date)
        document["in_date"] = _date_to_datetime(self.in_date)
        document["status"] = self.status.value
        document["parent_approval_status"] = self.parent_approval_status.value
        document["status_history"] = [history_entry_to_document(entry) for entry in self.status_history]
        if self.id is not None:
            document["_id"] = ObjectId(self.id)
        return document

    @classmethod
    def from_document(cls, document: dict) -> "Leave":
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        for key in ("out_date", "in_date"):
            if isinstance(data.get(key), datetime):
                data[key] = data[key].date()
        data["status_history"] = tuple(
            {**entry, "role": ActorRole(entry["role"])}
            for entry in data.get("status_history") or ()
        )
        return cls(**data)


def history_entry_to_document(entry: StatusHistoryEntry) -> dict:
    document = entry.model_dump(mode="python")
    document["status"] = entry.status.value
    document["role"] = entry.role.value
    return document


def _date_to_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min, UTC)
