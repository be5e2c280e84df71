# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import AllocationType
from app.schemas.common import Number

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class AllocationInput(BaseModel):
    """One funding source of an employment.

    ``level_of_effort`` is a percentage (0-100). Grant allocations name the
    position slot they occupy; org-funded allocations name the grant that
    backs them and get a generated org-funded record.
    """

    model_config = ConfigDict(extra="forbid")

    allocation_type: AllocationType
    level_of_effort: Decimal = Field(ge=0, le=100, max_digits=5, decimal_places=2)
    position_slot_id: uuid.UUID | None = None
    grant_id: uuid.UUID | None = None
    department_position_id: uuid.UUID | None = None
    description: str | None = Field(default=None, max_length=500)
    allocated_amount: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)

    @model_validator(mode="after")
    def _validate_source(self) -> Self:
        if self.allocation_type == AllocationType.GRANT and self.position_slot_id is None:
            msg = "position_slot_id is required for grant allocations"
            raise ValueError(msg)
        if self.allocation_type == AllocationType.ORG_FUNDED and self.grant_id is None:
            msg = "grant_id is required for org_funded allocations"
            raise ValueError(msg)
        return self


class _AllocationSetPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    start_date: date | None = None
    end_date: date | None = None
    allocations: list[AllocationInput] = Field(min_length=1)

    @model_validator(mode="after")
    def _validate_dates(self) -> Self:
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            msg = "end_date must be on or after start_date"
            raise ValueError(msg)
        return self


class CreateAllocationsPayload(_AllocationSetPayload):
    """Request body for creating an employment's first allocation set."""

    employee_id: uuid.UUID
    employment_id: uuid.UUID


class ReplaceAllocationsPayload(_AllocationSetPayload):
    """Request body for replacing an employment's allocation set wholesale."""


class DeactivateAllocationsPayload(BaseModel):
    """Request body for ending an employment's active allocation set.

    Allocations stay active through ``as_of`` (default today) and end there.
    """

    model_config = ConfigDict(extra="forbid")

    as_of: date | None = None


class CreateGrantRequest(BaseModel):
    """Request body for creating a grant."""

    model_config = ConfigDict(extra="forbid")

    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)


class CreateGrantItemRequest(BaseModel):
    """Request body for adding a position line to a grant.

    ``slot_count`` position slots are created with the item; it defaults to
    the capacity, or a single slot when the item is uncapped.
    """

    model_config = ConfigDict(extra="forbid")

    grant_position: str = Field(min_length=1, max_length=255)
    grant_position_number: int | None = Field(default=None, ge=0)
    grant_salary: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    slot_count: int | None = Field(default=None, ge=1, le=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AllocationResponse(BaseModel):
    """A funding allocation. ``level_of_effort`` is a percentage."""

    id: uuid.UUID
    employee_id: uuid.UUID
    employment_id: uuid.UUID
    allocation_type: AllocationType
    position_slot_id: uuid.UUID | None
    org_funded_id: uuid.UUID | None
    level_of_effort: Number
    allocated_amount: Number | None
    start_date: date
    end_date: date | None


class DeactivationResult(BaseModel):
    """Outcome of ending an allocation set."""

    employment_id: uuid.UUID
    as_of: date
    deactivated_count: int


class GrantItemAllocations(BaseModel):
    """Grant allocations placed on a grant item's slots, newest first."""

    grant_item_id: uuid.UUID
    as_of: date
    total_allocations: int
    active_allocations: int
    allocations: list[AllocationResponse]


class AllocationSummary(BaseModel):
    """Allocations active for an employee on a date, with their effort total."""

    employee_id: uuid.UUID
    as_of: date
    total_effort: Number
    allocations: list[AllocationResponse]


class PositionSlotResponse(BaseModel):
    """A slot on a grant item."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    grant_item_id: uuid.UUID
    slot_number: int


class GrantItemResponse(BaseModel):
    """A grant position line with its slots."""

    id: uuid.UUID
    grant_id: uuid.UUID
    grant_position: str
    grant_position_number: int | None
    grant_salary: Number | None
    slots: list[PositionSlotResponse]


class GrantResponse(BaseModel):
    """A grant with its position lines."""

    id: uuid.UUID
    code: str
    name: str
    items: list[GrantItemResponse]


class GrantItemCapacityResponse(BaseModel):
    """Occupancy of a grant item on a date. ``capacity`` None means uncapped."""

    grant_item_id: uuid.UUID
    as_of: date
    capacity: int | None
    current_count: int
    available: int | None
