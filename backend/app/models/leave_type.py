# ruff: noqa: TC003
from __future__ import annotations

from decimal import Decimal

from sqlmodel import Field

from app.models.base import ActorStampMixin, TimestampMixin, UUIDBase


class LeaveType(UUIDBase, TimestampMixin, ActorStampMixin, table=True):
    """A kind of leave (annual, sick, ...) with its yearly entitlement."""

    __tablename__ = "leave_type"

    name: str = Field(max_length=100, unique=True)
    default_duration: Decimal = Field(
        default=Decimal(0), max_digits=6, decimal_places=2, sa_column_kwargs={"server_default": "0"}
    )
    requires_attachment: bool = Field(default=False, sa_column_kwargs={"server_default": "false"})
    description: str | None = Field(default=None, max_length=1000)
