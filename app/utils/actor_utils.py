import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Union

from exceptions import ForbiddenError, NotFoundError
from models.actors import ActorRole, GuardianProfile, Principal, ResidentProfile
from models.leaves import Leave

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE = "create"
    CANCEL = "cancel"
    GUARDIAN_DECIDE = "guardian_decide"
    SUPERVISOR_DECIDE = "supervisor_decide"
    LIST = "list"
    VIEW = "view"
    COUNT = "count"


PERMITTED_OPERATIONS: Dict[ActorRole, FrozenSet[Operation]] = {
    ActorRole.RESIDENT: frozenset({Operation.CREATE, Operation.CANCEL, Operation.LIST, Operation.VIEW}),
    ActorRole.GUARDIAN: frozenset({Operation.GUARDIAN_DECIDE, Operation.LIST, Operation.VIEW}),
    ActorRole.SUPERVISOR: frozenset({Operation.SUPERVISOR_DECIDE, Operation.LIST, Operation.VIEW, Operation.COUNT}),
}


@dataclass(frozen=True)
class ResidentActor:
    profile: ResidentProfile
    role = ActorRole.RESIDENT

    @property
    def user_id(self) -> str:
        return self.profile.user_id


@dataclass(frozen=True)
class GuardianActor:
    profile: GuardianProfile
    role = ActorRole.GUARDIAN

    @property
    def user_id(self) -> str:
        return self.profile.user_id


@dataclass(frozen=True)
class SupervisorActor:
    user_id: str
    institution_id: str
    role = ActorRole.SUPERVISOR


Actor = Union[ResidentActor, GuardianActor, SupervisorActor]


def ensure_permitted(principal: Principal, operation: Operation) -> None:
    if operation not in PERMITTED_OPERATIONS.get(principal.role, frozenset()):
        logger.warning("%s %s may not perform %s", principal.role.value, principal.user_id, operation.value)
        raise ForbiddenError("You are not authorized to perform this function")


async def resolve_actor(principal: Principal, students, guardians) -> Actor:
    """Map the caller onto exactly one actor variant of their institution.

    A missing resident profile is a NotFound, a missing guardian link is
    Forbidden. Nothing ever falls back to another role.
    """
    if principal.role == ActorRole.RESIDENT:
        profile = await students.find_by_user(principal.user_id, principal.institution_id)
        if profile is None:
            raise NotFoundError("Student profile not found")
        return ResidentActor(profile)

    if principal.role == ActorRole.GUARDIAN:
        profile = await guardians.find_by_user(principal.user_id, principal.institution_id)
        if profile is None:
            raise ForbiddenError("Parent profile not found")
        return GuardianActor(profile)

    if principal.role == ActorRole.SUPERVISOR:
        return SupervisorActor(principal.user_id, principal.institution_id)

    raise ForbiddenError("You are not authorized to perform this function")


def ensure_owner(actor: ResidentActor, leave: Leave) -> None:
    if leave.student_id != actor.profile.id:
        logger.warning("resident %s tried to act on leave %s it does not own", actor.user_id, leave.id)
        raise ForbiddenError("Not authorized to cancel this leave request")


def ensure_linked_guardian(actor: GuardianActor, leave: Leave) -> None:
    if leave.student_id != actor.profile.student_id:
        logger.warning("guardian %s is not linked to the student of leave %s", actor.user_id, leave.id)
        raise ForbiddenError("Not authorized to approve this leave request")


def can_view(actor: Actor, leave: Leave) -> bool:
    if isinstance(actor, ResidentActor):
        return leave.student_id == actor.profile.id
    if isinstance(actor, GuardianActor):
        return leave.student_id == actor.profile.student_id
    return leave.institution_id == actor.institution_id
