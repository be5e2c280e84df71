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


class CreateBalanceRequest(BaseModel):
    """Request body for creating a balance row."""

    model_config = ConfigDict(extra="forbid")

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    total_days: Decimal = Field(ge=0, max_digits=6, decimal_places=2)
    year: int = Field(ge=2000, le=2100)


class UpdateBalanceRequest(BaseModel):
    """Admin correction of a balance row; remaining days are always recomputed."""

    model_config = ConfigDict(extra="forbid")

    total_days: Decimal | None = Field(default=None, ge=0, max_digits=6, decimal_places=2)
    used_days: Decimal | None = Field(default=None, ge=0, max_digits=6, decimal_places=2)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """A balance row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    total_days: Number
    used_days: Number
    remaining_days: Number
    created_by: str | None
    updated_by: str | None
    updated_at: datetime


class EmployeeBalanceResponse(BaseModel):
    """A balance row enriched with employee and leave type details."""

    employee_id: uuid.UUID
    employee_name: str
    staff_id: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    leave_type_description: str | None
    requires_attachment: bool
    year: int
    total_days: Number
    used_days: Number
    remaining_days: Number


class AvailabilityResponse(BaseModel):
    """Whether a number of days can be taken from a balance."""

    valid: bool
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    available_days: Number
    requested_days: Number
    shortfall: Number | None = None
