"""Unit tests for the outing request transition table.

Pure computation: no store, no actors. Covers every edge, every rejected
(state, event) pair, history growth and snapshot immutability.
"""

import pytest
from datetime import date, datetime, timedelta

from pytz import UTC

from exceptions import InvalidStateError
from models.actors import ActorRole
from models.leaves import LeaveStatus, ParentApprovalStatus
from utils.leave_utils import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    LeaveEvent,
    apply_transition,
    history_is_consistent,
    is_terminal,
    new_leave,
    transition_for,
)

NOW = datetime(2024, 1, 5, 9, 0, tzinfo=UTC)


def _make_leave(**overrides):
    data = dict(
        institution_id="inst-a",
        student_id="65a000000000000000000001",
        created_by="user-s",
        reason="Home visit",
        type="Personal",
        out_date=date(2024, 1, 10),
        in_date=date(2024, 1, 12),
        now=NOW,
    )
    data.update(overrides)
    leave = new_leave(**data)
    return leave.model_copy(update={"id": "65a0000000000000000000ff"})


def _at(status):
    return _make_leave().model_copy(update={"status": status})


ALLOWED = {(source, event) for source, event in TRANSITIONS if source is not None}
DECISION_EVENTS = [e for e in LeaveEvent if e != LeaveEvent.CREATE]


class TestNewLeave:
    def test_starts_pending_parent_with_seeded_history(self) -> None:
        leave = _make_leave()
        assert leave.status == LeaveStatus.PENDING_PARENT
        assert leave.parent_approval_status == ParentApprovalStatus.PENDING
        assert len(leave.status_history) == 1
        entry = leave.status_history[0]
        assert entry.status == LeaveStatus.PENDING_PARENT
        assert entry.role == ActorRole.RESIDENT
        assert entry.updated_by == "user-s"
        assert entry.timestamp == NOW
        assert leave.created_at == NOW

    def test_new_leave_is_consistent(self) -> None:
        assert history_is_consistent(_make_leave())


class TestTransitionTable:
    @pytest.mark.parametrize("source,event,target", [
        (LeaveStatus.PENDING_PARENT, LeaveEvent.PARENT_APPROVE, LeaveStatus.APPROVED_BY_PARENT),
        (LeaveStatus.PENDING_PARENT, LeaveEvent.PARENT_REJECT, LeaveStatus.REJECTED_BY_PARENT),
        (LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.WARDEN_APPROVE, LeaveStatus.APPROVED),
        (LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.WARDEN_REJECT, LeaveStatus.REJECTED),
        (LeaveStatus.PENDING_PARENT, LeaveEvent.CANCEL, LeaveStatus.CANCELLED),
        (LeaveStatus.LEGACY_PENDING, LeaveEvent.CANCEL, LeaveStatus.CANCELLED),
    ])
    def test_allowed_edges(self, source, event, target) -> None:
        assert transition_for(source, event).target == target

    def test_every_other_pair_is_rejected(self) -> None:
        rejected = 0
        for status in LeaveStatus:
            for event in DECISION_EVENTS:
                if (status, event) in ALLOWED:
                    continue
                with pytest.raises(InvalidStateError) as exc:
                    transition_for(status, event)
                assert exc.value.current_status == status.value
                rejected += 1
        assert rejected == len(LeaveStatus) * len(DECISION_EVENTS) - len(ALLOWED)

    def test_terminal_states_have_no_outgoing_edges(self) -> None:
        for status in TERMINAL_STATUSES:
            assert is_terminal(status)
            assert not any(source == status for source, _ in TRANSITIONS)

    def test_pending_states_are_not_terminal(self) -> None:
        assert not is_terminal(LeaveStatus.PENDING_PARENT)
        assert not is_terminal(LeaveStatus.APPROVED_BY_PARENT)

    def test_messages_name_the_missing_precondition(self) -> None:
        with pytest.raises(InvalidStateError, match="not awaiting parent approval"):
            transition_for(LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.PARENT_APPROVE)
        with pytest.raises(InvalidStateError, match="Only parent-approved requests"):
            transition_for(LeaveStatus.PENDING_PARENT, LeaveEvent.WARDEN_APPROVE)
        with pytest.raises(InvalidStateError, match="Only pending requests may be cancelled"):
            transition_for(LeaveStatus.APPROVED_BY_PARENT, LeaveEvent.CANCEL)


class TestApplyTransition:
    def test_parent_approval_sets_parent_fields(self) -> None:
        leave = _make_leave()
        later = NOW + timedelta(hours=1)
        updated, patch = apply_transition(leave, LeaveEvent.PARENT_APPROVE, "user-gs", later)

        assert updated.status == LeaveStatus.APPROVED_BY_PARENT
        assert updated.parent_approval_status == ParentApprovalStatus.APPROVED
        assert updated.parent_approved_by == "user-gs"
        assert updated.parent_approved_at == later
        assert updated.parent_rejection_reason is None
        assert patch["status"] == "ApprovedByParent"
        assert patch["parent_approval_status"] == "Approved"
        assert len(patch["status_history"]) == 2

    def test_parent_rejection_records_reason(self) -> None:
        updated, _ = apply_transition(_make_leave(), LeaveEvent.PARENT_REJECT, "user-gs", NOW, reason="Exams")
        assert updated.status == LeaveStatus.REJECTED_BY_PARENT
        assert updated.parent_approval_status == ParentApprovalStatus.REJECTED
        assert updated.parent_rejection_reason == "Exams"
        assert updated.status_history[-1].reason == "Exams"
        assert updated.status_history[-1].role == ActorRole.GUARDIAN

    def test_warden_approval_sets_approved_fields(self) -> None:
        leave, _ = apply_transition(_make_leave(), LeaveEvent.PARENT_APPROVE, "user-gs", NOW)
        updated, patch = apply_transition(leave, LeaveEvent.WARDEN_APPROVE, "warden-a", NOW, reason="ignored")
        assert updated.status == LeaveStatus.APPROVED
        assert updated.approved_by == "warden-a"
        assert updated.approved_at == NOW
        assert updated.rejection_reason is None
        assert updated.status_history[-1].reason is None
        assert set(patch) == {"status", "approved_by", "approved_at", "status_history"}

    def test_warden_rejection_sets_rejection_reason(self) -> None:
        leave, _ = apply_transition(_make_leave(), LeaveEvent.PARENT_APPROVE, "user-gs", NOW)
        updated, _ = apply_transition(leave, LeaveEvent.WARDEN_REJECT, "warden-a", NOW, reason="Curfew")
        assert updated.status == LeaveStatus.REJECTED
        assert updated.rejection_reason == "Curfew"
        assert updated.approved_at is None
        assert updated.status_history[-1].role == ActorRole.SUPERVISOR

    def test_cancel_appends_history(self) -> None:
        updated, patch = apply_transition(_make_leave(), LeaveEvent.CANCEL, "user-s", NOW)
        assert updated.status == LeaveStatus.CANCELLED
        assert len(updated.status_history) == 2
        assert set(patch) == {"status", "status_history"}

    def test_input_snapshot_is_untouched(self) -> None:
        leave = _make_leave()
        before = leave.model_dump()
        apply_transition(leave, LeaveEvent.PARENT_APPROVE, "user-gs", NOW)
        assert leave.model_dump() == before

    def test_prior_history_entries_are_preserved(self) -> None:
        leave = _make_leave()
        step1, _ = apply_transition(leave, LeaveEvent.PARENT_APPROVE, "user-gs", NOW)
        step2, _ = apply_transition(step1, LeaveEvent.WARDEN_APPROVE, "warden-a", NOW)
        assert step2.status_history[:2] == step1.status_history
        assert step1.status_history[:1] == leave.status_history

    def test_rejected_transition_leaves_snapshot_alone(self) -> None:
        leave = _at(LeaveStatus.APPROVED)
        with pytest.raises(InvalidStateError):
            apply_transition(leave, LeaveEvent.CANCEL, "user-s", NOW)
        assert leave.status == LeaveStatus.APPROVED
        assert len(leave.status_history) == 1


class TestHistoryConsistency:
    @pytest.mark.parametrize("path", [
        [LeaveEvent.PARENT_APPROVE, LeaveEvent.WARDEN_APPROVE],
        [LeaveEvent.PARENT_APPROVE, LeaveEvent.WARDEN_REJECT],
        [LeaveEvent.PARENT_REJECT],
        [LeaveEvent.CANCEL],
    ])
    def test_every_legal_path_is_consistent(self, path) -> None:
        leave = _make_leave()
        for event in path:
            leave, _ = apply_transition(leave, event, "someone", NOW)
        assert history_is_consistent(leave)
        assert len(leave.status_history) == len(path) + 1

    def test_skipped_parent_step_is_detected(self) -> None:
        leave = _make_leave()
        forged = leave.model_copy(update={
            "status": LeaveStatus.APPROVED,
            "status_history": leave.status_history + (
                leave.status_history[0].model_copy(update={
                    "status": LeaveStatus.APPROVED, "role": ActorRole.SUPERVISOR,
                }),
            ),
        })
        assert not history_is_consistent(forged)

    def test_status_out_of_step_with_history_is_detected(self) -> None:
        assert not history_is_consistent(_at(LeaveStatus.APPROVED_BY_PARENT))
