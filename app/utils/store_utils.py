import logging
from typing import Dict, List, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from exceptions import ServerError
from models.actors import GuardianProfile, ResidentProfile
from models.leaves import Leave

logger = logging.getLogger(__name__)


class StudentDirectory(Protocol):
    async def find_by_user(self, user_id: str, institution_id: str) -> Optional[ResidentProfile]: ...

    async def find_by_id(self, student_id: str, institution_id: str) -> Optional[ResidentProfile]: ...

    async def find_many_by_ids(self, student_ids: List[str], institution_id: str) -> Dict[str, ResidentProfile]: ...


class GuardianDirectory(Protocol):
    async def find_by_user(self, user_id: str, institution_id: str) -> Optional[GuardianProfile]: ...


class LeaveStore(Protocol):
    async def create(self, leave: Leave) -> Leave: ...

    async def find_by_id(self, leave_id: str, institution_id: str) -> Optional[Leave]: ...

    async def find_many(
        self,
        institution_id: str,
        student_id: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Leave]: ...

    async def count_by_status(self, institution_id: str) -> Dict[str, int]: ...

    async def conditional_update(
        self, leave_id: str, institution_id: str, expected_status: str, patch: dict
    ) -> Optional[Leave]: ...


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class MongoLeaveStore:
    """``leaves`` collection access, always scoped by institution."""

    def __init__(self, collection):
        self.collection = collection

    async def create(self, leave: Leave) -> Leave:
        try:
            result = await self.collection.insert_one(leave.to_document())
        except PyMongoError as e:
            logger.exception("Failed to insert leave request")
            raise ServerError("Server error while creating leave request") from e
        return leave.model_copy(update={"id": str(result.inserted_id)})

    async def find_by_id(self, leave_id: str, institution_id: str) -> Optional[Leave]:
        object_id = to_object_id(leave_id)
        if object_id is None:
            return None
        try:
            document = await self.collection.find_one({"_id": object_id, "institution_id": institution_id})
        except PyMongoError as e:
            logger.exception("Failed to load leave %s", leave_id)
            raise ServerError("Server error while fetching leave request") from e
        return Leave.from_document(document) if document else None

    async def find_many(self, institution_id, student_id=None, status=None, skip=0, limit=50):
        query = {"institution_id": institution_id}
        if student_id is not None:
            query["student_id"] = student_id
        if status is not None:
            query["status"] = status

        try:
            cursor = self.collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
            documents = await cursor.to_list(length=limit)
        except PyMongoError as e:
            logger.exception("Failed to list leaves for institution %s", institution_id)
            raise ServerError("Server error while fetching leave requests") from e
        return [Leave.from_document(document) for document in documents]

    async def count_by_status(self, institution_id: str) -> Dict[str, int]:
        pipeline = [
            {"$match": {"institution_id": institution_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ]
        try:
            results = await self.collection.aggregate(pipeline).to_list(length=None)
        except PyMongoError as e:
            logger.exception("Failed to count leaves for institution %s", institution_id)
            raise ServerError("Server error while counting leave requests") from e
        return {item["_id"]: item["count"] for item in results}

    async def conditional_update(self, leave_id, institution_id, expected_status, patch):
        """
        Write ``patch`` only if the record still has ``expected_status``.
        Returns the updated leave, or None when another writer got there first
        (or the record vanished from the institution).
        """
        object_id = to_object_id(leave_id)
        if object_id is None:
            return None
        try:
            document = await self.collection.find_one_and_update(
                {"_id": object_id, "institution_id": institution_id, "status": expected_status},
                {"$set": patch},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.exception("Failed to update leave %s", leave_id)
            raise ServerError("Server error while updating leave request") from e
        return Leave.from_document(document) if document else None


class MongoStudentDirectory:

    def __init__(self, collection):
        self.collection = collection

    async def find_by_user(self, user_id, institution_id):
        return await self._find_one({"user_id": user_id, "institution_id": institution_id})

    async def find_by_id(self, student_id, institution_id):
        object_id = to_object_id(student_id)
        if object_id is None:
            return None
        return await self._find_one({"_id": object_id, "institution_id": institution_id})

    async def find_many_by_ids(self, student_ids, institution_id):
        object_ids = [oid for oid in (to_object_id(s) for s in set(student_ids)) if oid is not None]
        if not object_ids:
            return {}
        try:
            cursor = self.collection.find({"_id": {"$in": object_ids}, "institution_id": institution_id})
            students = await cursor.to_list(length=len(object_ids))
        except PyMongoError as e:
            logger.exception("Failed to load student profiles")
            raise ServerError("Server error while fetching student profiles") from e
        profiles = [_resident_profile(student) for student in students]
        return {profile.id: profile for profile in profiles}

    async def _find_one(self, query: dict) -> Optional[ResidentProfile]:
        try:
            student = await self.collection.find_one(query)
        except PyMongoError as e:
            logger.exception("Failed to load student profile")
            raise ServerError("Server error while fetching student profile") from e
        return _resident_profile(student) if student else None


def _resident_profile(student: dict) -> ResidentProfile:
    return ResidentProfile(
        id=str(student["_id"]),
        user_id=str(student["user_id"]),
        institution_id=str(student["institution_id"]),
        name=student.get("name"),
        roll_number=student.get("roll_number"),
        room=student.get("room"),
    )


class MongoGuardianDirectory:

    def __init__(self, collection):
        self.collection = collection

    async def find_by_user(self, user_id, institution_id):
        try:
            parent = await self.collection.find_one({"user_id": user_id, "institution_id": institution_id})
        except PyMongoError as e:
            logger.exception("Failed to load parent profile")
            raise ServerError("Server error while fetching parent profile") from e
        if not parent:
            return None
        return GuardianProfile(
            id=str(parent["_id"]),
            user_id=str(parent["user_id"]),
            institution_id=str(parent["institution_id"]),
            student_id=str(parent["student_id"]),
            relationship=parent.get("relationship", "Guardian"),
        )
