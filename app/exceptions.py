from typing import Optional

from fastapi import HTTPException, status


class LeaveWorkflowError(Exception):
    """Base class for every failure surfaced by the outing workflow.

    Each subclass carries a stable machine-readable ``kind`` and the HTTP
    status the router answers with. The message is meant for humans.
    """

    kind = "ServerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(LeaveWorkflowError):
    kind = "ValidationError"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LeaveWorkflowError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(LeaveWorkflowError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(LeaveWorkflowError):
    kind = "InvalidState"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["current_status"] = self.current_status
        return data


class ServerError(LeaveWorkflowError):
    kind = "ServerError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(error: LeaveWorkflowError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_dict())


def get_user_exception():
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    return credentials_exception
