from __future__ import annotations

import enum


class LeaveRequestStatus(enum.StrEnum):
    """Lifecycle of a leave request."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class ApprovalStatus(enum.StrEnum):
    """Decision recorded by a single approver."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class AllocationType(enum.StrEnum):
    """Funding source backing an employee allocation."""

    GRANT = "grant"
    ORG_FUNDED = "org_funded"


class LeaveRequestSort(enum.StrEnum):
    """Sort modes accepted by the leave request listing."""

    RECENTLY_ADDED = "recently_added"
    ASCENDING = "ascending"
    DESCENDING = "descending"
    LAST_MONTH = "last_month"
    LAST_7_DAYS = "last_7_days"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_TYPE = "LEAVE_TYPE"
    LEAVE_BALANCE = "LEAVE_BALANCE"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    LEAVE_APPROVAL = "LEAVE_APPROVAL"
    LEAVE_ATTACHMENT = "LEAVE_ATTACHMENT"
    HOLIDAY = "HOLIDAY"
    EMPLOYEE = "EMPLOYEE"
    EMPLOYMENT = "EMPLOYMENT"
    FUNDING_ALLOCATION = "FUNDING_ALLOCATION"
    GRANT = "GRANT"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"
    CANCEL = "CANCEL"
    REOPEN = "REOPEN"
    REPLACE = "REPLACE"
