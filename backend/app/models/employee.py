# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase


class Employee(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A person on the payroll. Leave balances and allocations hang off this."""

    __tablename__ = "employee"

    staff_id: str = Field(max_length=50, unique=True, index=True)
    first_name: str = Field(max_length=255)
    last_name: str = Field(max_length=255)
    email: str | None = Field(default=None, max_length=255)


class Employment(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """An employment contract. Funding allocations are owned per employment."""

    __tablename__ = "employment"

    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    position_title: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    salary: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    start_date: date
    end_date: date | None = None
