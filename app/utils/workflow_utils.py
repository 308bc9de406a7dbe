"""Outing request workflow.

Student raises a request, the linked parent decides first, the warden of the
same institution decides last. Every operation runs one check-then-act cycle
against a single leave: resolve the caller, load the record scoped by
institution, validate role, ownership and status, then commit through a
conditional write keyed on the status that was read. A lost race surfaces as
InvalidStateError with the freshly persisted status; nothing is retried here.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from pytz import UTC

from exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from models.actors import ActorRole, Principal
from models.leaves import Leave, LeaveStatus
from schemas.leave import CreateLeave, Decision, LeaveDecision, LeaveFilter, LeaveView, LeavesCount
from utils.actor_utils import (
    GuardianActor,
    Operation,
    ResidentActor,
    can_view,
    ensure_linked_guardian,
    ensure_owner,
    ensure_permitted,
    resolve_actor,
)
from utils.leave_utils import LeaveEvent, apply_transition, history_is_consistent, new_leave, transition_for
from utils.leave_view_utils import leave_view

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class LeaveTransitionEvent:
    event: LeaveEvent
    leave: Leave
    actor_role: ActorRole
    actor_user_id: str


class LeaveWorkflow:

    def __init__(self, store, students, guardians, listeners: Iterable[Callable] = (),
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.students = students
        self.guardians = guardians
        self.listeners = list(listeners)
        self.clock = clock
        self._pending_side_effects = set()

    async def create_leave(self, principal: Principal, request: CreateLeave) -> LeaveView:
        ensure_permitted(principal, Operation.CREATE)

        reason = (request.reason or "").strip()
        leave_type = (request.type or "").strip()
        if not reason or not leave_type:
            raise ValidationError("Please provide reason, type, out date, and in date")
        if request.out_date >= request.in_date:
            raise ValidationError("Out date must be before in date")

        actor = await resolve_actor(principal, self.students, self.guardians)
        leave = new_leave(
            institution_id=principal.institution_id,
            student_id=actor.profile.id,
            created_by=principal.user_id,
            reason=reason,
            type=leave_type,
            out_date=request.out_date,
            in_date=request.in_date,
            out_time=request.out_time,
            in_time=request.in_time,
            now=self.clock(),
        )
        leave = await self.store.create(leave)
        logger.info("leave %s created by student %s", leave.id, leave.student_id)

        self._emit(LeaveEvent.CREATE, leave, principal)
        return leave_view(leave)

    async def list_leaves(self, principal: Principal, leave_filter: Optional[LeaveFilter] = None) -> List[LeaveView]:
        ensure_permitted(principal, Operation.LIST)
        leave_filter = leave_filter or LeaveFilter()
        actor = await resolve_actor(principal, self.students, self.guardians)

        student_id = None
        if isinstance(actor, ResidentActor):
            student_id = actor.profile.id
        elif isinstance(actor, GuardianActor):
            student_id = actor.profile.student_id

        leaves = await self.store.find_many(
            principal.institution_id,
            student_id=student_id,
            status=leave_filter.status.value if leave_filter.status else None,
            skip=leave_filter.skip,
            limit=leave_filter.limit,
        )
        if principal.role != ActorRole.SUPERVISOR:
            return [leave_view(leave) for leave in leaves]

        students = await self.students.find_many_by_ids(
            [leave.student_id for leave in leaves], principal.institution_id
        )
        return [leave_view(leave, supervisor=True, student=students.get(leave.student_id)) for leave in leaves]

    async def get_leave(self, principal: Principal, leave_id: str) -> LeaveView:
        ensure_permitted(principal, Operation.VIEW)
        actor = await resolve_actor(principal, self.students, self.guardians)
        leave = await self._load(leave_id, principal.institution_id)
        if not can_view(actor, leave):
            raise ForbiddenError("Not authorized to view this leave request")
        return await self._view_for(principal, leave)

    async def count_leaves(self, principal: Principal) -> LeavesCount:
        ensure_permitted(principal, Operation.COUNT)
        counts = await self.store.count_by_status(principal.institution_id)
        return LeavesCount(leave_count=sum(counts.values()), status_counts=counts)

    async def decide_as_guardian(self, principal: Principal, leave_id: str, decision: LeaveDecision) -> LeaveView:
        ensure_permitted(principal, Operation.GUARDIAN_DECIDE)
        verdict = _parse_decision(decision)

        actor = await resolve_actor(principal, self.students, self.guardians)
        leave = await self._load(leave_id, principal.institution_id)
        ensure_linked_guardian(actor, leave)

        event = LeaveEvent.PARENT_APPROVE if verdict == Decision.APPROVED else LeaveEvent.PARENT_REJECT
        leave = await self._commit(leave, event, principal, decision.reason)
        return leave_view(leave)

    async def decide_as_supervisor(self, principal: Principal, leave_id: str, decision: LeaveDecision) -> LeaveView:
        ensure_permitted(principal, Operation.SUPERVISOR_DECIDE)
        verdict = _parse_decision(decision)

        leave = await self._load(leave_id, principal.institution_id)

        event = LeaveEvent.WARDEN_APPROVE if verdict == Decision.APPROVED else LeaveEvent.WARDEN_REJECT
        leave = await self._commit(leave, event, principal, decision.reason)
        return await self._view_for(principal, leave)

    async def cancel_leave(self, principal: Principal, leave_id: str) -> LeaveView:
        ensure_permitted(principal, Operation.CANCEL)
        actor = await resolve_actor(principal, self.students, self.guardians)
        leave = await self._load(leave_id, principal.institution_id)
        ensure_owner(actor, leave)

        leave = await self._commit(leave, LeaveEvent.CANCEL, principal)
        return leave_view(leave)

    async def wait_for_side_effects(self):
        if self._pending_side_effects:
            await asyncio.gather(*self._pending_side_effects, return_exceptions=True)

    async def _load(self, leave_id: str, institution_id: str) -> Leave:
        leave = await self.store.find_by_id(leave_id, institution_id)
        if leave is None:
            raise NotFoundError("Leave request not found")
        if not history_is_consistent(leave):
            logger.warning("leave %s carries a status history outside the transition table", leave.id)
        return leave

    async def _commit(self, leave: Leave, event: LeaveEvent, principal: Principal,
                      reason: Optional[str] = None) -> Leave:
        try:
            updated, patch = apply_transition(leave, event, principal.user_id, self.clock(), reason)
        except InvalidStateError:
            logger.warning("rejected %s on leave %s in status %s", event.value, leave.id, leave.status.value)
            raise

        committed = await self.store.conditional_update(leave.id, leave.institution_id, leave.status.value, patch)
        if committed is None:
            current = await self.store.find_by_id(leave.id, leave.institution_id)
            if current is None:
                raise NotFoundError("Leave request not found")
            logger.warning("lost update on leave %s: expected %s, found %s",
                           leave.id, leave.status.value, current.status.value)
            transition_for(current.status, event)
            raise InvalidStateError(
                "Leave request was updated concurrently, reload and try again",
                current_status=current.status.value,
            )

        logger.info("leave %s moved %s -> %s by %s %s", committed.id, leave.status.value,
                    committed.status.value, principal.role.value, principal.user_id)
        self._emit(event, committed, principal)
        return committed

    async def _view_for(self, principal: Principal, leave: Leave) -> LeaveView:
        if principal.role != ActorRole.SUPERVISOR:
            return leave_view(leave)
        student = await self.students.find_by_id(leave.student_id, leave.institution_id)
        return leave_view(leave, supervisor=True, student=student)

    def _emit(self, event: LeaveEvent, leave: Leave, principal: Principal):
        transition_event = LeaveTransitionEvent(event, leave, principal.role, principal.user_id)
        for listener in self.listeners:
            task = asyncio.create_task(_run_listener(listener, transition_event))
            self._pending_side_effects.add(task)
            task.add_done_callback(self._pending_side_effects.discard)


async def _run_listener(listener, transition_event: LeaveTransitionEvent):
    try:
        await listener(transition_event)
    except Exception:
        logger.exception("side effect %r failed for leave %s", listener, transition_event.leave.id)


def _parse_decision(decision: LeaveDecision) -> Decision:
    try:
        return Decision(decision.decision)
    except ValueError:
        raise ValidationError("Invalid status. Must be Approved or Rejected")
