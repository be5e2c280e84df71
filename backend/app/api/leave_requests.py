# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.models.enums import LeaveRequestSort, LeaveRequestStatus
from app.schemas.common import Envelope, PaginatedEnvelope
from app.schemas.request import (
    ApprovalDecisionResponse,
    ApprovalResponse,
    AttachmentInput,
    AttachmentResponse,
    CalculateDaysPayload,
    ChangeStatusPayload,
    CreateApprovalPayload,
    CreateLeaveRequestPayload,
    LeaveRequestResponse,
    LeaveRequestStatistics,
    OverlapCheckPayload,
    OverlapResponse,
    UpdateApprovalPayload,
    UpdateLeaveRequestPayload,
    WorkingDaysResponse,
)
from app.services import approval as approval_service
from app.services import calendar as calendar_service
from app.services import request as request_service
from app.services import statistics as statistics_service

leave_requests_router = APIRouter(prefix="/leave-requests", tags=["leave-requests"])


# ---------------------------------------------------------------------------
# Calculators
# ---------------------------------------------------------------------------


@leave_requests_router.get("/statistics", response_model=Envelope[LeaveRequestStatistics])
async def get_statistics(session: SessionDep) -> Envelope[LeaveRequestStatistics]:
    """Request counts by status, period and leave type."""
    stats = await statistics_service.get_statistics(session)
    return Envelope(message="Leave request statistics retrieved successfully", data=stats)


@leave_requests_router.post("/calculate-days", response_model=Envelope[WorkingDaysResponse])
async def calculate_days(
    payload: CalculateDaysPayload,
    session: SessionDep,
) -> Envelope[WorkingDaysResponse]:
    """Count working days in a date range, excluding weekends and active holidays."""
    if payload.detailed:
        result = await calendar_service.calculate_working_days_detailed(session, payload.start_date, payload.end_date)
    else:
        working_days = await calendar_service.calculate_working_days(session, payload.start_date, payload.end_date)
        result = WorkingDaysResponse(
            start_date=payload.start_date,
            end_date=payload.end_date,
            working_days=working_days,
        )
    return Envelope(message="Working days calculated successfully", data=result)


@leave_requests_router.post("/check-overlap", response_model=Envelope[OverlapResponse])
async def check_overlap(
    payload: OverlapCheckPayload,
    session: SessionDep,
) -> Envelope[OverlapResponse]:
    """Report pending or approved requests of the employee that overlap a date range."""
    conflicts = await request_service.check_overlap(
        session, payload.employee_id, payload.start_date, payload.end_date, payload.exclude_request_id
    )
    return Envelope(
        message="Overlapping leave requests found" if conflicts else "No overlapping leave requests",
        data=OverlapResponse(has_overlap=bool(conflicts), conflicts=conflicts),
    )


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


@leave_requests_router.post("", response_model=Envelope[LeaveRequestResponse], status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveRequestResponse]:
    """Create a leave request with its items and attachments."""
    request = await request_service.create_request(session, actor, payload)
    return Envelope(message="Leave request created successfully", data=request)


@leave_requests_router.get("", response_model=PaginatedEnvelope[LeaveRequestResponse])
async def list_requests(
    session: SessionDep,
    search: str | None = Query(default=None),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    leave_types: list[uuid.UUID] | None = Query(default=None),
    status_filter: LeaveRequestStatus | None = Query(default=None, alias="status"),
    supervisor_approved: bool | None = Query(default=None),
    hr_site_admin_approved: bool | None = Query(default=None),
    sort_by: LeaveRequestSort = Query(default=LeaveRequestSort.RECENTLY_ADDED),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=10, ge=1, le=100),
) -> PaginatedEnvelope[LeaveRequestResponse]:
    """List leave requests with filters, sorting and pagination."""
    requests, pagination = await request_service.list_requests(
        session,
        search=search,
        from_date=from_date,
        to_date=to_date,
        leave_type_ids=leave_types,
        status_filter=status_filter,
        supervisor_approved=supervisor_approved,
        hr_site_admin_approved=hr_site_admin_approved,
        sort_by=sort_by,
        page=page,
        per_page=per_page,
    )
    return PaginatedEnvelope(message="Leave requests retrieved successfully", data=requests, pagination=pagination)


@leave_requests_router.get("/{request_id}", response_model=Envelope[LeaveRequestResponse])
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[LeaveRequestResponse]:
    """Get a single leave request."""
    request = await request_service.get_request(session, request_id)
    return Envelope(message="Leave request retrieved successfully", data=request)


@leave_requests_router.put("/{request_id}", response_model=Envelope[LeaveRequestResponse])
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateLeaveRequestPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveRequestResponse]:
    """Edit a leave request; items, when given, replace the existing ones."""
    request = await request_service.update_request(session, actor, request_id, payload)
    return Envelope(message="Leave request updated successfully", data=request)


@leave_requests_router.patch("/{request_id}/status", response_model=Envelope[LeaveRequestResponse])
async def change_status(
    request_id: uuid.UUID,
    payload: ChangeStatusPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveRequestResponse]:
    """Move a request to a new status, deducting or restoring balances as needed."""
    request = await request_service.change_status(session, actor, request_id, payload.status)
    return Envelope(message=f"Leave request {request.status}", data=request)


@leave_requests_router.delete("/{request_id}", response_model=Envelope[None])
async def delete_request(
    request_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[None]:
    """Delete a request; approved days go back to the balances."""
    await request_service.delete_request(session, actor, request_id)
    return Envelope(message="Leave request deleted successfully")


# ---------------------------------------------------------------------------
# Approvals
# ---------------------------------------------------------------------------


@leave_requests_router.get("/{request_id}/approvals", response_model=Envelope[list[ApprovalResponse]])
async def list_approvals(
    request_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[list[ApprovalResponse]]:
    """List the approval records of a request."""
    approvals = await approval_service.list_approvals(session, request_id)
    return Envelope(message="Approvals retrieved successfully", data=approvals)


@leave_requests_router.post(
    "/{request_id}/approvals",
    response_model=Envelope[ApprovalDecisionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_approval(
    request_id: uuid.UUID,
    payload: CreateApprovalPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[ApprovalDecisionResponse]:
    """Record an approver's decision and re-evaluate the request status."""
    decision = await approval_service.create_approval(session, actor, request_id, payload)
    return Envelope(message="Approval recorded successfully", data=decision)


@leave_requests_router.put(
    "/{request_id}/approvals/{approval_id}",
    response_model=Envelope[ApprovalDecisionResponse],
)
async def update_approval(
    request_id: uuid.UUID,
    approval_id: uuid.UUID,
    payload: UpdateApprovalPayload,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[ApprovalDecisionResponse]:
    """Change an approval record and re-evaluate the request status."""
    decision = await approval_service.update_approval(session, actor, request_id, approval_id, payload)
    return Envelope(message="Approval updated successfully", data=decision)


@leave_requests_router.delete(
    "/{request_id}/approvals/{approval_id}",
    response_model=Envelope[LeaveRequestStatus],
)
async def delete_approval(
    request_id: uuid.UUID,
    approval_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[LeaveRequestStatus]:
    """Remove an approval record; returns the request's resulting status."""
    request_status = await approval_service.delete_approval(session, actor, request_id, approval_id)
    return Envelope(message="Approval deleted successfully", data=request_status)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


@leave_requests_router.get("/{request_id}/attachments", response_model=Envelope[list[AttachmentResponse]])
async def list_attachments(
    request_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[list[AttachmentResponse]]:
    """List a request's attachments."""
    attachments = await request_service.list_attachments(session, request_id)
    return Envelope(message="Attachments retrieved successfully", data=attachments)


@leave_requests_router.post(
    "/{request_id}/attachments",
    response_model=Envelope[AttachmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_attachment(
    request_id: uuid.UUID,
    payload: AttachmentInput,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[AttachmentResponse]:
    """Attach a document reference to a request."""
    attachment = await request_service.add_attachment(session, actor, request_id, payload)
    return Envelope(message="Attachment added successfully", data=attachment)


@leave_requests_router.delete("/{request_id}/attachments/{attachment_id}", response_model=Envelope[None])
async def delete_attachment(
    request_id: uuid.UUID,
    attachment_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[None]:
    """Remove an attachment from a request."""
    await request_service.delete_attachment(session, actor, request_id, attachment_id)
    return Envelope(message="Attachment deleted successfully")
