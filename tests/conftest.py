"""Shared fixtures: in-memory stand-ins for the Mongo-backed collaborators.

The leave store keeps Mongo-shaped documents (``Leave.to_document``) so the
same mapping code runs as in production.
"""

import copy
from datetime import date, datetime, timedelta

import pytest
from bson import ObjectId
from pytz import UTC

from models.actors import ActorRole, GuardianProfile, Principal, ResidentProfile
from models.leaves import Leave
from schemas.leave import CreateLeave
from utils.store_utils import to_object_id
from utils.workflow_utils import LeaveWorkflow

INSTITUTION_A = "inst-a"
INSTITUTION_B = "inst-b"


class InMemoryLeaveStore:
    def __init__(self):
        self.documents = {}
        self.before_update = None  # hook to simulate a concurrent writer
        self.updates = 0

    async def create(self, leave):
        document = leave.to_document()
        document["_id"] = ObjectId()
        self.documents[document["_id"]] = document
        return Leave.from_document(copy.deepcopy(document))

    async def find_by_id(self, leave_id, institution_id):
        document = self.documents.get(to_object_id(leave_id))
        if document is None or document["institution_id"] != institution_id:
            return None
        return Leave.from_document(copy.deepcopy(document))

    async def find_many(self, institution_id, student_id=None, status=None, skip=0, limit=50):
        documents = [
            d for d in self.documents.values()
            if d["institution_id"] == institution_id
            and (student_id is None or d["student_id"] == student_id)
            and (status is None or d["status"] == status)
        ]
        documents.sort(key=lambda d: d["created_at"], reverse=True)
        return [Leave.from_document(copy.deepcopy(d)) for d in documents[skip:skip + limit]]

    async def count_by_status(self, institution_id):
        counts = {}
        for document in self.documents.values():
            if document["institution_id"] == institution_id:
                counts[document["status"]] = counts.get(document["status"], 0) + 1
        return counts

    async def conditional_update(self, leave_id, institution_id, expected_status, patch):
        if self.before_update is not None:
            hook, self.before_update = self.before_update, None
            await hook(self)
        document = self.documents.get(to_object_id(leave_id))
        if document is None or document["institution_id"] != institution_id or document["status"] != expected_status:
            return None
        document.update(copy.deepcopy(patch))
        self.updates += 1
        return Leave.from_document(copy.deepcopy(document))

    def raw(self, leave_id):
        return copy.deepcopy(self.documents[ObjectId(leave_id)])


class InMemoryStudentDirectory:
    def __init__(self, profiles):
        self.profiles = list(profiles)
        self.lookups = 0

    async def find_by_user(self, user_id, institution_id):
        return next((p for p in self.profiles if p.user_id == user_id and p.institution_id == institution_id), None)

    async def find_by_id(self, student_id, institution_id):
        self.lookups += 1
        return next((p for p in self.profiles if p.id == student_id and p.institution_id == institution_id), None)

    async def find_many_by_ids(self, student_ids, institution_id):
        self.lookups += 1
        wanted = set(student_ids)
        return {p.id: p for p in self.profiles if p.id in wanted and p.institution_id == institution_id}


class InMemoryGuardianDirectory:
    def __init__(self, profiles):
        self.profiles = list(profiles)

    async def find_by_user(self, user_id, institution_id):
        return next((p for p in self.profiles if p.user_id == user_id and p.institution_id == institution_id), None)


class SteppingClock:
    """Every reading is one minute after the previous one."""

    def __init__(self, start=datetime(2024, 1, 5, 9, 0, tzinfo=UTC)):
        self.current = start

    def __call__(self):
        self.current = self.current + timedelta(minutes=1)
        return self.current


STUDENT_S = ResidentProfile(id=str(ObjectId()), user_id="user-s", institution_id=INSTITUTION_A,
                            name="Asha Rao", roll_number="R-101", room="B-12")
STUDENT_T = ResidentProfile(id=str(ObjectId()), user_id="user-t", institution_id=INSTITUTION_A,
                            name="Tom Varghese", room="C-03")
STUDENT_B = ResidentProfile(id=str(ObjectId()), user_id="user-b", institution_id=INSTITUTION_B, name="Bina")
GUARDIAN_OF_S = GuardianProfile(id=str(ObjectId()), user_id="user-gs", institution_id=INSTITUTION_A,
                                student_id=STUDENT_S.id, relationship="Mother")
GUARDIAN_OF_T = GuardianProfile(id=str(ObjectId()), user_id="user-gt", institution_id=INSTITUTION_A,
                                student_id=STUDENT_T.id)


def principal(user_id, role, institution_id=INSTITUTION_A):
    return Principal(user_id=user_id, role=role, institution_id=institution_id)


@pytest.fixture
def store():
    return InMemoryLeaveStore()


@pytest.fixture
def workflow(store):
    return LeaveWorkflow(
        store=store,
        students=InMemoryStudentDirectory([STUDENT_S, STUDENT_T, STUDENT_B]),
        guardians=InMemoryGuardianDirectory([GUARDIAN_OF_S, GUARDIAN_OF_T]),
        clock=SteppingClock(),
    )


@pytest.fixture
def resident():
    return principal(STUDENT_S.user_id, ActorRole.RESIDENT)


@pytest.fixture
def other_resident():
    return principal(STUDENT_T.user_id, ActorRole.RESIDENT)


@pytest.fixture
def guardian():
    return principal(GUARDIAN_OF_S.user_id, ActorRole.GUARDIAN)


@pytest.fixture
def other_guardian():
    return principal(GUARDIAN_OF_T.user_id, ActorRole.GUARDIAN)


@pytest.fixture
def supervisor():
    return principal("warden-a", ActorRole.SUPERVISOR)


@pytest.fixture
def foreign_supervisor():
    return principal("warden-b", ActorRole.SUPERVISOR, INSTITUTION_B)


def home_visit(**overrides) -> CreateLeave:
    data = {
        "reason": "Home visit",
        "type": "Personal",
        "out_date": date(2024, 1, 10),
        "in_date": date(2024, 1, 12),
    }
    data.update(overrides)
    return CreateLeave(**data)
