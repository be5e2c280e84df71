# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase
from app.models.enums import AllocationType


class Grant(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A funding grant."""

    __tablename__ = "funding_grant"

    code: str = Field(max_length=50, unique=True)
    name: str = Field(max_length=255)


class GrantItem(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A budgeted position line on a grant.

    ``grant_position_number`` caps how many grant allocations may be active on
    the item at once; 0 or NULL means no cap.
    """

    __tablename__ = "grant_item"

    grant_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("funding_grant.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    grant_position: str = Field(max_length=255)
    grant_position_number: int | None = None
    grant_salary: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)


class PositionSlot(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A numbered slot on a grant item that an allocation can occupy."""

    __tablename__ = "position_slot"
    __table_args__ = (sa.UniqueConstraint("grant_item_id", "slot_number", name="uq_position_slot_number"),)

    grant_item_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("grant_item.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    slot_number: int


class OrgFundedAllocation(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """Backing record generated for each org-funded employee allocation."""

    __tablename__ = "org_funded_allocation"

    grant_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("funding_grant.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    department_position_id: uuid.UUID | None = None
    description: str | None = Field(default=None, max_length=500)


class EmployeeFundingAllocation(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """Share of an employment funded by one source.

    ``level_of_effort`` is stored as a fraction (0.6 for 60%).
    """

    __tablename__ = "employee_funding_allocation"
    __table_args__ = (
        sa.Index("ix_allocation_employee_employment", "employee_id", "employment_id"),
        sa.CheckConstraint(
            "(allocation_type = 'grant' AND position_slot_id IS NOT NULL AND org_funded_id IS NULL)"
            " OR (allocation_type = 'org_funded' AND org_funded_id IS NOT NULL AND position_slot_id IS NULL)",
            name="ck_allocation_source_matches_type",
        ),
    )

    employee_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("employee.id", ondelete="CASCADE"), nullable=False),
    )
    employment_id: uuid.UUID = Field(
        sa_column=sa.Column(
            sa.Uuid, sa.ForeignKey("employment.id", ondelete="CASCADE"), nullable=False, index=True
        ),
    )
    allocation_type: str = Field(default=AllocationType.GRANT, max_length=20)
    position_slot_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("position_slot.id"), nullable=True, index=True),
    )
    org_funded_id: uuid.UUID | None = Field(
        default=None,
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("org_funded_allocation.id"), nullable=True),
    )
    level_of_effort: Decimal = Field(max_digits=5, decimal_places=4)
    allocated_amount: Decimal | None = Field(default=None, max_digits=12, decimal_places=2)
    start_date: date
    end_date: date | None = None
