# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Number

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateLeaveTypeRequest(BaseModel):
    """Request body for creating a leave type."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    default_duration: Decimal = Field(default=Decimal(0), ge=0, max_digits=6, decimal_places=2)
    description: str | None = Field(default=None, max_length=1000)
    requires_attachment: bool = False


class UpdateLeaveTypeRequest(BaseModel):
    """Request body for editing a leave type. Omitted fields are left unchanged."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    default_duration: Decimal | None = Field(default=None, ge=0, max_digits=6, decimal_places=2)
    description: str | None = Field(default=None, max_length=1000)
    requires_attachment: bool | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveTypeResponse(BaseModel):
    """A leave type."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    default_duration: Number
    requires_attachment: bool
    description: str | None
    created_by: str | None
    updated_by: str | None
    created_at: datetime


class LeaveTypeCreatedResponse(BaseModel):
    """A new leave type and the number of balances initialised for it."""

    leave_type: LeaveTypeResponse
    balances_created: int
