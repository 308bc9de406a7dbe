from typing import Optional

from models.actors import ResidentProfile
from models.leaves import Leave
from schemas.leave import HistoryEntryView, LeaveView, StudentSummary


def leave_view(leave: Leave, supervisor: bool = False, student: Optional[ResidentProfile] = None) -> LeaveView:
    """
    Project a stored leave onto the read view of the caller's role.
    Supervisors additionally see the resident's identity and the user ids of
    everyone who acted on the request; residents and guardians do not.
    Args:
        leave (Leave): The stored aggregate. It is never modified.
        supervisor (bool): Whether the caller is the institution's supervisor.
        student (Optional[ResidentProfile]): The owning resident, used for the supervisor view.
    Returns:
        LeaveView: The role-appropriate projection.
    """
    history = [
        HistoryEntryView(
            status=entry.status,
            role=entry.role,
            updated_by=entry.updated_by if supervisor else None,
            reason=entry.reason,
            timestamp=entry.timestamp,
        )
        for entry in leave.status_history
    ]

    view = LeaveView(
        id=leave.id,
        reason=leave.reason,
        type=leave.type,
        out_date=leave.out_date,
        in_date=leave.in_date,
        out_time=leave.out_time,
        in_time=leave.in_time,
        status=leave.status,
        parent_approval_status=leave.parent_approval_status,
        parent_approved_at=leave.parent_approved_at,
        parent_rejection_reason=leave.parent_rejection_reason,
        approved_at=leave.approved_at,
        rejection_reason=leave.rejection_reason,
        created_at=leave.created_at,
        status_history=history,
    )
    if not supervisor:
        return view

    return view.model_copy(update={
        "student": student_summary(leave.student_id, student),
        "approved_by": leave.approved_by,
        "parent_approved_by": leave.parent_approved_by,
    })


def student_summary(student_id: str, student: Optional[ResidentProfile]) -> StudentSummary:
    if student is None:
        return StudentSummary(id=student_id)
    return StudentSummary(
        id=student_id,
        name=student.name or "Unknown Student",
        roll_number=student.roll_number or "N/A",
        room=student.room or "N/A",
    )
