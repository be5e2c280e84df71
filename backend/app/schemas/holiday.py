# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class CreateHolidayRequest(BaseModel):
    """Request body for creating a holiday."""

    model_config = ConfigDict(extra="forbid")

    date: date
    name: str = Field(min_length=1, max_length=255)
    is_active: bool = True


class UpdateHolidayRequest(BaseModel):
    """Request body for renaming or (de)activating a holiday."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_active: bool | None = None


class HolidayResponse(BaseModel):
    """Response schema for a holiday."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    name: str
    is_active: bool
