from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from exceptions import InvalidStateError
from models.actors import ActorRole
from models.leaves import Leave, LeaveStatus, ParentApprovalStatus, StatusHistoryEntry


class LeaveEvent(str, Enum):
    CREATE = "create"
    PARENT_APPROVE = "parent_approve"
    PARENT_REJECT = "parent_reject"
    WARDEN_APPROVE = "warden_approve"
    WARDEN_REJECT = "warden_reject"
    CANCEL = "cancel"


@dataclass(frozen=True)
class Transition:
    source: Optional[LeaveStatus]
    event: LeaveEvent
    target: LeaveStatus
    actor: ActorRole


TRANSITIONS: Dict[Tuple[Optional[LeaveStatus], LeaveEvent], Transition] = {
    (t.source, t.event): t
    for t in (
        Transition(None, LeaveEvent.CREATE, LeaveStatus.PENDING_PARENT, ActorRole.RESIDENT),
        Transition(LeaveStatus.PENDING_PARENT, LeaveEvent.PARENT_APPROVE, LeaveStatus.APPROVED_BY_PARENT, ActorRole.GUARDIAN),
        Transition(LeaveStatus.PENDING_PARENT, LeaveEvent.PARENT_REJECT, LeaveStatus.REJECTED_BY_PARENT, ActorRole.GUARDIAN),
        Transition(LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.WARDEN_APPROVE, LeaveStatus.APPROVED, ActorRole.SUPERVISOR),
        Transition(LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.WARDEN_REJECT, LeaveStatus.REJECTED, ActorRole.SUPERVISOR),
        Transition(LeaveStatus.PENDING_PARENT, LeaveEvent.CANCEL, LeaveStatus.CANCELLED, ActorRole.RESIDENT),
        Transition(LeaveStatus.LEGACY_PENDING, LeaveEvent.CANCEL, LeaveStatus.CANCELLED, ActorRole.RESIDENT),
    )
}

TERMINAL_STATUSES = frozenset({
    LeaveStatus.APPROVED,
    LeaveStatus.REJECTED,
    LeaveStatus.REJECTED_BY_PARENT,
    LeaveStatus.CANCELLED,
})

_INVALID_STATE_MESSAGES = {
    LeaveEvent.PARENT_APPROVE: "This leave request is not awaiting parent approval",
    LeaveEvent.PARENT_REJECT: "This leave request is not awaiting parent approval",
    LeaveEvent.WARDEN_APPROVE: "Only parent-approved requests may be finalized",
    LeaveEvent.WARDEN_REJECT: "Only parent-approved requests may be finalized",
    LeaveEvent.CANCEL: "Only pending requests may be cancelled",
}


def is_terminal(status: LeaveStatus) -> bool:
    return status in TERMINAL_STATUSES


def transition_for(status: LeaveStatus, event: LeaveEvent) -> Transition:
    """Look up the edge leaving ``status`` on ``event``.

    Raises InvalidStateError, carrying the current status, when the table
    has no such edge.
    """
    transition = TRANSITIONS.get((status, event))
    if transition is None:
        message = _INVALID_STATE_MESSAGES.get(event, f"Cannot {event.value} a leave request in status {status.value}")
        raise InvalidStateError(message, current_status=status.value)
    return transition


def new_leave(
    institution_id: str,
    student_id: str,
    created_by: str,
    reason: str,
    type: str,
    out_date: date,
    in_date: date,
    now: datetime,
    out_time: Optional[str] = None,
    in_time: Optional[str] = None,
) -> Leave:
    transition = TRANSITIONS[(None, LeaveEvent.CREATE)]
    return Leave(
        institution_id=institution_id,
        student_id=student_id,
        reason=reason,
        type=type,
        out_date=out_date,
        in_date=in_date,
        out_time=out_time,
        in_time=in_time,
        status=transition.target,
        parent_approval_status=ParentApprovalStatus.PENDING,
        status_history=(
            StatusHistoryEntry(
                status=transition.target,
                role=transition.actor,
                updated_by=created_by,
                timestamp=now,
            ),
        ),
        created_at=now,
    )


def apply_transition(
    leave: Leave,
    event: LeaveEvent,
    updated_by: str,
    now: datetime,
    reason: Optional[str] = None,
) -> Tuple[Leave, dict]:
    """Move ``leave`` along the edge for ``event``.

    Returns the new snapshot together with the document patch of changed
    fields the store has to write. The input snapshot is left untouched.
    """
    transition = transition_for(leave.status, event)

    changes = {"status": transition.target}
    if event == LeaveEvent.PARENT_APPROVE:
        changes.update(
            parent_approval_status=ParentApprovalStatus.APPROVED,
            parent_approved_by=updated_by,
            parent_approved_at=now,
        )
    elif event == LeaveEvent.PARENT_REJECT:
        changes.update(
            parent_approval_status=ParentApprovalStatus.REJECTED,
            parent_approved_by=updated_by,
            parent_approved_at=now,
            parent_rejection_reason=reason,
        )
    elif event == LeaveEvent.WARDEN_APPROVE:
        changes.update(approved_by=updated_by, approved_at=now)
    elif event == LeaveEvent.WARDEN_REJECT:
        changes.update(approved_by=updated_by, rejection_reason=reason)

    entry = StatusHistoryEntry(
        status=transition.target,
        role=transition.actor,
        updated_by=updated_by,
        reason=reason if event in (LeaveEvent.PARENT_REJECT, LeaveEvent.WARDEN_REJECT) else None,
        timestamp=now,
    )
    changes["status_history"] = leave.status_history + (entry,)

    updated = leave.model_copy(update=changes)
    document = updated.to_document()
    return updated, {key: document[key] for key in changes}


def history_is_consistent(leave: Leave) -> bool:
    """Check that every recorded step in the history is an edge of the table."""
    history = leave.status_history
    if not history or history[0].status != LeaveStatus.PENDING_PARENT or history[0].role != ActorRole.RESIDENT:
        return False
    reachable = {
        (t.source, t.target, t.actor)
        for t in TRANSITIONS.values()
    }
    for previous, current in zip(history, history[1:]):
        if (previous.status, current.status, current.role) not in reachable:
            return False
    return history[-1].status == leave.status
