import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from config import settings
from db import leaves_collection, notifications_collection, parents_collection, students_collection, system_activity_collection
from exceptions import get_user_exception
from models.actors import ActorRole, Principal
from utils.activity_utils import SupervisorActivityListener
from utils.notification_utils import LeaveNotificationListener
from utils.store_utils import MongoGuardianDirectory, MongoLeaveStore, MongoStudentDirectory
from utils.workflow_utils import LeaveWorkflow

logger = logging.getLogger(__name__)

oauth2_bearer = OAuth2PasswordBearer(tokenUrl="auth/login/")

secret_key = settings.SECRET_KEY
algorithm = settings.ALGORITHM

_workflow = None


def principal_from_token(token: str) -> Principal:
    """
    Turn an already issued access token into the caller's identity.
    The ``data`` claim carries ``sub`` (user id), ``role`` and ``institution_id``;
    they are trusted as-is once the signature checks out.
    """
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.warning("JWT error - %s", e)
        raise get_user_exception()

    data = payload.get("data")
    if not data or not data.get("sub") or not data.get("institution_id"):
        raise get_user_exception()

    try:
        role = ActorRole(data.get("role"))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not authorized to perform this function")

    return Principal(user_id=str(data["sub"]), role=role, institution_id=str(data["institution_id"]))


async def get_current_user(token: str = Depends(oauth2_bearer)) -> Principal:
    return principal_from_token(token)


def get_leave_workflow() -> LeaveWorkflow:
    global _workflow
    if _workflow is None:
        listeners = []
        if settings.NOTIFICATIONS_ENABLED:
            listeners.append(LeaveNotificationListener(notifications_collection))
        listeners.append(SupervisorActivityListener(system_activity_collection))
        _workflow = LeaveWorkflow(
            store=MongoLeaveStore(leaves_collection),
            students=MongoStudentDirectory(students_collection),
            guardians=MongoGuardianDirectory(parents_collection),
            listeners=listeners,
        )
    return _workflow
