from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from exceptions import LeaveWorkflowError, to_http_exception
from models.actors import Principal
from models.leaves import LeaveStatus
from schemas.leave import CreateLeave, LeaveDecision, LeaveFilter, LeaveList, LeaveResponse, LeavesCount
from utils.app_utils import get_current_user, get_leave_workflow
from utils.workflow_utils import LeaveWorkflow


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint to verify if the service is running.
    Returns:
        dict: A simple message indicating the service is running.
    """
    return {"message": "Leave Management Service is running"}


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=LeaveResponse)
async def create_leave_request(
    leave_request: CreateLeave,
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    """
    Create a new outing request for the calling student.
    The request starts in PendingParent and waits for the linked parent.
    Raises:
        HTTPException:
            - 400: If reason/type is empty or out date is not before in date
            - 403: If the caller is not a student
            - 404: If the student profile is not found in the caller's institution
    """
    try:
        leave = await workflow.create_leave(principal, leave_request)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"message": "Leave request submitted successfully", "leave": leave}


@router.get("/", response_model=LeaveList)
async def list_leave_requests(
    status: Optional[LeaveStatus] = Query(None, description="Filter by leave status"),
    skip: int = Query(0, ge=0, description="Number of items to skip"),
    limit: int = Query(50, ge=1, le=100, description="Number of items to return"),
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    """
    List outing requests visible to the caller, newest first.
    Students see their own, parents their ward's, wardens the whole institution.
    """
    try:
        leaves = await workflow.list_leaves(principal, LeaveFilter(status=status, skip=skip, limit=limit))
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"leaves": leaves, "skip": skip, "limit": limit}


@router.get("/count", response_model=LeavesCount)
async def get_leaves_count(
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    try:
        return await workflow.count_leaves(principal)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)


@router.get("/{leave_id}", response_model=LeaveResponse)
async def get_leave_request(
    leave_id: str,
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    try:
        leave = await workflow.get_leave(principal, leave_id)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"message": "Leave request found", "leave": leave}


@router.put("/{leave_id}/parent-approval", response_model=LeaveResponse)
async def parent_approve_or_reject(
    leave_id: str,
    body: LeaveDecision,
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    """
    Parent approves or rejects their ward's pending outing request.
    Raises:
        HTTPException:
            - 400: If the decision is not Approved or Rejected
            - 403: If the caller is not the parent linked to the student
            - 404: If the leave request is not found in the caller's institution
            - 409: If the request is not awaiting parent approval
    """
    try:
        leave = await workflow.decide_as_guardian(principal, leave_id, body)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"message": f"Leave request {body.decision.lower()} by parent", "leave": leave}


@router.put("/{leave_id}/status", response_model=LeaveResponse)
async def update_leave_status(
    leave_id: str,
    body: LeaveDecision,
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    """
    Warden finalizes a parent-approved outing request.
    Raises:
        HTTPException:
            - 400: If the decision is not Approved or Rejected
            - 403: If the caller is not a warden
            - 404: If the leave request is not found in the warden's institution
            - 409: If the request has not been approved by the parent
    """
    try:
        leave = await workflow.decide_as_supervisor(principal, leave_id, body)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"message": f"Leave request {body.decision.lower()} successfully", "leave": leave}


@router.put("/{leave_id}/cancel", response_model=LeaveResponse)
async def cancel_my_leave_request(
    leave_id: str,
    principal: Principal = Depends(get_current_user),
    workflow: LeaveWorkflow = Depends(get_leave_workflow),
):
    """
    Cancel the caller's own outing request while it still waits for the parent.
    """
    try:
        leave = await workflow.cancel_leave(principal, leave_id)
    except LeaveWorkflowError as e:
        raise to_http_exception(e)
    return {"message": "Leave request cancelled successfully", "leave": leave}
