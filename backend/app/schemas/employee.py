# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import Number
from app.schemas.funding import AllocationInput, AllocationResponse


class CreateEmployeeRequest(BaseModel):
    """Request body for creating an employee."""

    model_config = ConfigDict(extra="forbid")

    staff_id: str = Field(min_length=1, max_length=50)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class UpdateEmployeeRequest(BaseModel):
    """Request body for editing an employee."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, min_length=1, max_length=255)
    last_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    staff_id: str
    first_name: str
    last_name: str
    email: str | None
    created_at: datetime


class CreateEmploymentRequest(BaseModel):
    """Request body for creating an employment with its funding allocations."""

    model_config = ConfigDict(extra="forbid")

    employee_id: uuid.UUID
    position_title: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    salary: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: date
    end_date: date | None = None
    allocations: list[AllocationInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.end_date is not None and self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class UpdateEmploymentRequest(BaseModel):
    """Request body for editing an employment.

    When ``allocations`` is given the whole allocation set is replaced.
    """

    model_config = ConfigDict(extra="forbid")

    position_title: str | None = Field(default=None, max_length=255)
    department: str | None = Field(default=None, max_length=255)
    salary: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    end_date: date | None = None
    allocations: list[AllocationInput] | None = None


class EmploymentResponse(BaseModel):
    """An employment and its funding allocations."""

    id: uuid.UUID
    employee_id: uuid.UUID
    position_title: str | None
    department: str | None
    salary: Number | None
    start_date: date
    end_date: date | None
    allocations: list[AllocationResponse]
