"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _stamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("updated_by", sa.String(length=255), nullable=True),
    ]


def _days(name: str) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=6, scale=2), nullable=False)


def upgrade() -> None:
    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])

    op.create_table(
        "employee",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("staff_id", sa.String(length=50), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employee_staff_id", "employee", ["staff_id"], unique=True)

    op.create_table(
        "employment",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position_title", sa.String(length=255), nullable=True),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("salary", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employment_employee_id", "employment", ["employee_id"])

    op.create_table(
        "leave_type",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("default_duration", sa.Numeric(precision=6, scale=2), server_default="0", nullable=False),
        sa.Column("requires_attachment", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "leave_balance",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        _days("total_days"),
        _days("used_days"),
        _days("remaining_days"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint("used_days >= 0", name="ck_balance_used_non_negative"),
        sa.CheckConstraint("used_days <= total_days", name="ck_balance_used_within_total"),
    )
    op.create_index("ix_leave_balance_employee_id", "leave_balance", ["employee_id"])
    op.create_index("ix_leave_balance_leave_type_id", "leave_balance", ["leave_type_id"])
    op.create_index("ix_leave_balance_year", "leave_balance", ["year"])

    op.create_table(
        "leave_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        _days("total_days"),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("supervisor_approved", sa.Boolean(), nullable=False),
        sa.Column("supervisor_approved_date", sa.Date(), nullable=True),
        sa.Column("hr_site_admin_approved", sa.Boolean(), nullable=False),
        sa.Column("hr_site_admin_approved_date", sa.Date(), nullable=True),
        sa.Column("attachment_notes", sa.String(length=1000), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_date_range"),
    )
    op.create_index("ix_leave_request_employee_id", "leave_request", ["employee_id"])
    op.create_index("ix_leave_request_status", "leave_request", ["status"])
    op.create_index("ix_leave_request_employee_dates", "leave_request", ["employee_id", "start_date", "end_date"])

    op.create_table(
        "leave_request_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "leave_request_id", sa.Uuid(), sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("leave_type_id", sa.Uuid(), sa.ForeignKey("leave_type.id"), nullable=False),
        _days("days"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("leave_request_id", "leave_type_id", name="uq_request_item_type"),
    )
    op.create_index("ix_leave_request_item_leave_request_id", "leave_request_item", ["leave_request_id"])
    op.create_index("ix_leave_request_item_leave_type_id", "leave_request_item", ["leave_type_id"])

    op.create_table(
        "leave_request_approval",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column(
            "leave_request_id", sa.Uuid(), sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("approver_role", sa.String(length=100), nullable=False),
        sa.Column("approver_name", sa.String(length=200), nullable=True),
        sa.Column("approver_signature", sa.String(length=200), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="pending", nullable=False),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leave_request_approval_leave_request_id", "leave_request_approval", ["leave_request_id"])

    op.create_table(
        "leave_attachment",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column(
            "leave_request_id", sa.Uuid(), sa.ForeignKey("leave_request.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("document_name", sa.String(length=255), nullable=False),
        sa.Column("document_url", sa.String(length=1000), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_leave_attachment_leave_request_id", "leave_attachment", ["leave_request_id"])

    op.create_table(
        "holiday",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_holiday_date", "holiday", ["date"], unique=True)

    op.create_table(
        "funding_grant",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )

    op.create_table(
        "grant_item",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("grant_id", sa.Uuid(), sa.ForeignKey("funding_grant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("grant_position", sa.String(length=255), nullable=False),
        sa.Column("grant_position_number", sa.Integer(), nullable=True),
        sa.Column("grant_salary", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_grant_item_grant_id", "grant_item", ["grant_id"])

    op.create_table(
        "position_slot",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("grant_item_id", sa.Uuid(), sa.ForeignKey("grant_item.id", ondelete="CASCADE"), nullable=False),
        sa.Column("slot_number", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("grant_item_id", "slot_number", name="uq_position_slot_number"),
    )
    op.create_index("ix_position_slot_grant_item_id", "position_slot", ["grant_item_id"])

    op.create_table(
        "org_funded_allocation",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("grant_id", sa.Uuid(), sa.ForeignKey("funding_grant.id", ondelete="CASCADE"), nullable=False),
        sa.Column("department_position_id", sa.Uuid(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_org_funded_allocation_grant_id", "org_funded_allocation", ["grant_id"])

    op.create_table(
        "employee_funding_allocation",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_stamps(),
        sa.Column("employee_id", sa.Uuid(), sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False),
        sa.Column("employment_id", sa.Uuid(), sa.ForeignKey("employment.id", ondelete="CASCADE"), nullable=False),
        sa.Column("allocation_type", sa.String(length=20), nullable=False),
        sa.Column("position_slot_id", sa.Uuid(), sa.ForeignKey("position_slot.id"), nullable=True),
        sa.Column("org_funded_id", sa.Uuid(), sa.ForeignKey("org_funded_allocation.id"), nullable=True),
        sa.Column("level_of_effort", sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column("allocated_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "(allocation_type = 'grant' AND position_slot_id IS NOT NULL AND org_funded_id IS NULL)"
            " OR (allocation_type = 'org_funded' AND org_funded_id IS NOT NULL AND position_slot_id IS NULL)",
            name="ck_allocation_source_matches_type",
        ),
    )
    op.create_index(
        "ix_allocation_employee_employment", "employee_funding_allocation", ["employee_id", "employment_id"]
    )
    op.create_index("ix_employee_funding_allocation_employment_id", "employee_funding_allocation", ["employment_id"])
    op.create_index(
        "ix_employee_funding_allocation_position_slot_id", "employee_funding_allocation", ["position_slot_id"]
    )


def downgrade() -> None:
    for table in (
        "employee_funding_allocation",
        "org_funded_allocation",
        "position_slot",
        "grant_item",
        "funding_grant",
        "holiday",
        "leave_attachment",
        "leave_request_approval",
        "leave_request_item",
        "leave_request",
        "leave_balance",
        "leave_type",
        "employment",
        "employee",
        "audit_log",
    ):
        op.drop_table(table)
