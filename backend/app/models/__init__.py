from sqlmodel import SQLModel

from app.models.audit import AuditLog
from app.models.balance import LeaveBalance
from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase
from app.models.employee import Employee, Employment
from app.models.enums import (
    AllocationType,
    ApprovalStatus,
    AuditAction,
    AuditEntityType,
    LeaveRequestSort,
    LeaveRequestStatus,
)
from app.models.funding import EmployeeFundingAllocation, Grant, GrantItem, OrgFundedAllocation, PositionSlot
from app.models.holiday import Holiday
from app.models.leave_type import LeaveType
from app.models.request import LeaveAttachment, LeaveRequest, LeaveRequestApproval, LeaveRequestItem

__all__ = [
    "ActorStampMixin",
    "AllocationType",
    "ApprovalStatus",
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Employee",
    "EmployeeFundingAllocation",
    "Employment",
    "Grant",
    "GrantItem",
    "Holiday",
    "LeaveAttachment",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveRequestApproval",
    "LeaveRequestItem",
    "LeaveRequestSort",
    "LeaveRequestStatus",
    "LeaveType",
    "OrgFundedAllocation",
    "PositionSlot",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
