# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase
from app.models.enums import ApprovalStatus, LeaveRequestStatus


def _now_utc() -> datetime:
    return datetime.now(UTC)


class LeaveRequest(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """An employee's leave request; its days live on the child items."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_date_range"),
    )

    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    total_days: Decimal = Field(default=Decimal(0), max_digits=6, decimal_places=2)
    reason: str | None = Field(default=None, max_length=1000)
    status: str = Field(
        default=LeaveRequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    # Paper-form approvals; informational only.
    supervisor_approved: bool = False
    supervisor_approved_date: date | None = None
    hr_site_admin_approved: bool = False
    hr_site_admin_approved_date: date | None = None
    attachment_notes: str | None = Field(default=None, max_length=1000)


class LeaveRequestItem(UUIDBase, TimestampMixin, table=True):
    """Days of a single leave type within a request."""

    __tablename__ = "leave_request_item"
    __table_args__ = (sa.UniqueConstraint("leave_request_id", "leave_type_id", name="uq_request_item_type"),)

    leave_request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    days: Decimal = Field(max_digits=6, decimal_places=2)


class LeaveRequestApproval(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """One approver's decision on a request."""

    __tablename__ = "leave_request_approval"

    leave_request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    approver_role: str = Field(max_length=100)
    approver_name: str | None = Field(default=None, max_length=200)
    approver_signature: str | None = Field(default=None, max_length=200)
    status: str = Field(default=ApprovalStatus.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})
    approval_date: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
    # Moves only when the decision changes; the evaluator orders by it.
    decided_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs={"server_default": sa.func.now()},
    )


class LeaveAttachment(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A supporting document referenced by URL."""

    __tablename__ = "leave_attachment"

    leave_request_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    document_name: str = Field(max_length=255)
    document_url: str = Field(max_length=1000)
    description: str | None = Field(default=None, max_length=500)
    added_at: datetime = Field(
        default_factory=_now_utc,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
