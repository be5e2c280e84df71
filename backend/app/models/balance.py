# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase


class LeaveBalance(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """Per employee, leave type and year entitlement.

    ``remaining_days`` is always ``total_days - used_days`` and is rewritten on
    every mutation by the balance service, never set on its own.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "year", name="uq_balance_employee_type_year"),
        sa.CheckConstraint("used_days >= 0", name="ck_balance_used_non_negative"),
        sa.CheckConstraint("used_days <= total_days", name="ck_balance_used_within_total"),
    )

    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    year: int = Field(index=True)
    total_days: Decimal = Field(default=Decimal(0), max_digits=6, decimal_places=2)
    used_days: Decimal = Field(default=Decimal(0), max_digits=6, decimal_places=2)
    remaining_days: Decimal = Field(default=Decimal(0), max_digits=6, decimal_places=2)
