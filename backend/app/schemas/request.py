# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import ApprovalStatus, LeaveRequestStatus
from app.schemas.common import Number

_MIN_ITEM_DAYS = Decimal("0.5")


def _reject_duplicate_leave_types(items: list[LeaveRequestItemInput] | None) -> None:
    if not items:
        return
    seen: set[uuid.UUID] = set()
    for item in items:
        if item.leave_type_id in seen:
            msg = f"Duplicate leave type {item.leave_type_id} in request items"
            raise ValueError(msg)
        seen.add(item.leave_type_id)


def _reject_inverted_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        msg = "end_date must be on or after start_date"
        raise ValueError(msg)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LeaveRequestItemInput(BaseModel):
    """Days requested against one leave type."""

    model_config = ConfigDict(extra="forbid")

    leave_type_id: uuid.UUID
    days: Decimal = Field(ge=_MIN_ITEM_DAYS, max_digits=6, decimal_places=2)


class AttachmentInput(BaseModel):
    """A supporting document referenced by URL."""

    model_config = ConfigDict(extra="forbid")

    document_name: str = Field(min_length=1, max_length=255)
    document_url: str = Field(min_length=1, max_length=1000)
    description: str | None = Field(default=None, max_length=500)


class CreateLeaveRequestPayload(BaseModel):
    """Request body for creating a leave request.

    ``status`` is normally omitted; back-office users may record an
    already-approved paper form by passing ``approved``.
    """

    model_config = ConfigDict(extra="forbid")

    employee_id: uuid.UUID
    start_date: date
    end_date: date
    items: list[LeaveRequestItemInput] = Field(min_length=1)
    reason: str | None = Field(default=None, max_length=1000)
    status: LeaveRequestStatus | None = None
    supervisor_approved: bool = False
    supervisor_approved_date: date | None = None
    hr_site_admin_approved: bool = False
    hr_site_admin_approved_date: date | None = None
    attachment_notes: str | None = Field(default=None, max_length=1000)
    attachments: list[AttachmentInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        _reject_inverted_range(self.start_date, self.end_date)
        _reject_duplicate_leave_types(self.items)
        return self


class UpdateLeaveRequestPayload(BaseModel):
    """Allow-listed fields of a leave request that may be edited."""

    model_config = ConfigDict(extra="forbid")

    start_date: date | None = None
    end_date: date | None = None
    items: list[LeaveRequestItemInput] | None = Field(default=None, min_length=1)
    reason: str | None = Field(default=None, max_length=1000)
    status: LeaveRequestStatus | None = None
    supervisor_approved: bool | None = None
    supervisor_approved_date: date | None = None
    hr_site_admin_approved: bool | None = None
    hr_site_admin_approved_date: date | None = None
    attachment_notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate(self) -> Self:
        _reject_inverted_range(self.start_date, self.end_date)
        _reject_duplicate_leave_types(self.items)
        return self


class ChangeStatusPayload(BaseModel):
    """Request body for a direct status change."""

    model_config = ConfigDict(extra="forbid")

    status: LeaveRequestStatus


class CreateApprovalPayload(BaseModel):
    """Request body for recording an approver's decision."""

    model_config = ConfigDict(extra="forbid")

    approver_role: str = Field(min_length=1, max_length=100)
    approver_name: str | None = Field(default=None, max_length=200)
    approver_signature: str | None = Field(default=None, max_length=200)
    status: ApprovalStatus = ApprovalStatus.PENDING
    approval_date: datetime | None = None


class UpdateApprovalPayload(BaseModel):
    """Request body for changing an approver's decision."""

    model_config = ConfigDict(extra="forbid")

    approver_name: str | None = Field(default=None, max_length=200)
    approver_signature: str | None = Field(default=None, max_length=200)
    status: ApprovalStatus | None = None
    approval_date: datetime | None = None


class OverlapCheckPayload(BaseModel):
    """Request body for checking a date range against existing requests."""

    model_config = ConfigDict(extra="forbid")

    employee_id: uuid.UUID
    start_date: date
    end_date: date
    exclude_request_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def _validate(self) -> Self:
        _reject_inverted_range(self.start_date, self.end_date)
        return self


class CalculateDaysPayload(BaseModel):
    """Request body for a working-day calculation."""

    model_config = ConfigDict(extra="forbid")

    start_date: date
    end_date: date
    detailed: bool = False

    @model_validator(mode="after")
    def _validate(self) -> Self:
        _reject_inverted_range(self.start_date, self.end_date)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestItemResponse(BaseModel):
    """One leave type line of a request."""

    id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_type_name: str | None
    days: Number


class ApprovalResponse(BaseModel):
    """An approver's decision."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_request_id: uuid.UUID
    approver_role: str
    approver_name: str | None
    approver_signature: str | None
    status: ApprovalStatus
    approval_date: datetime | None
    created_by: str | None
    updated_by: str | None


class AttachmentResponse(BaseModel):
    """A supporting document."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    leave_request_id: uuid.UUID
    document_name: str
    document_url: str
    description: str | None
    added_at: datetime


class LeaveRequestResponse(BaseModel):
    """A leave request with its items, approvals and attachments."""

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str | None
    staff_id: str | None
    start_date: date
    end_date: date
    total_days: Number
    reason: str | None
    status: LeaveRequestStatus
    supervisor_approved: bool
    supervisor_approved_date: date | None
    hr_site_admin_approved: bool
    hr_site_admin_approved_date: date | None
    attachment_notes: str | None
    items: list[LeaveRequestItemResponse]
    approvals: list[ApprovalResponse]
    attachments: list[AttachmentResponse]
    created_by: str | None
    updated_by: str | None
    created_at: datetime


class OverlapConflict(BaseModel):
    """An existing request overlapping the checked range."""

    id: uuid.UUID
    start_date: date
    end_date: date
    status: LeaveRequestStatus
    leave_types: list[str]


class OverlapResponse(BaseModel):
    """Result of an overlap check."""

    has_overlap: bool
    conflicts: list[OverlapConflict]


class HolidayDay(BaseModel):
    """A holiday that fell inside a calculated range."""

    date: date
    name: str


class WorkingDaysResponse(BaseModel):
    """Working days in a date range; the breakdown is filled when requested."""

    start_date: date
    end_date: date
    working_days: int
    calendar_days: int | None = None
    weekend_days: int | None = None
    holidays: list[HolidayDay] | None = None


class LeaveTypeUsage(BaseModel):
    """Request count for one leave type."""

    leave_type_id: uuid.UUID
    leave_type_name: str
    request_count: int


class LeaveRequestStatistics(BaseModel):
    """Dashboard counters for leave requests."""

    total_requests: int
    pending: int
    approved: int
    declined: int
    cancelled: int
    this_week: int
    this_month: int
    this_year: int
    top_leave_types: list[LeaveTypeUsage]


class ApprovalDecisionResponse(BaseModel):
    """An approval together with the request status it produced."""

    approval: ApprovalResponse
    request_status: LeaveRequestStatus
