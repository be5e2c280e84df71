# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from app.api.deps import ActorDep
from app.db import SessionDep
from app.schemas.common import Envelope, PaginatedEnvelope
from app.schemas.holiday import CreateHolidayRequest, HolidayResponse, UpdateHolidayRequest
from app.services import holiday as holiday_service

holidays_router = APIRouter(prefix="/holidays", tags=["holidays"])


@holidays_router.post("", response_model=Envelope[HolidayResponse], status_code=status.HTTP_201_CREATED)
async def create_holiday(
    payload: CreateHolidayRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[HolidayResponse]:
    """Create a holiday."""
    holiday = await holiday_service.create_holiday(session, actor, payload)
    return Envelope(message="Holiday created successfully", data=holiday)


@holidays_router.get("", response_model=PaginatedEnvelope[HolidayResponse])
async def list_holidays(
    session: SessionDep,
    year: int | None = Query(default=None),
    active_only: bool = Query(default=False),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=50, ge=1, le=100),
) -> PaginatedEnvelope[HolidayResponse]:
    """List holidays with optional year filter."""
    holidays, pagination = await holiday_service.list_holidays(session, year, active_only, page, per_page)
    return PaginatedEnvelope(message="Holidays retrieved successfully", data=holidays, pagination=pagination)


@holidays_router.get("/{holiday_id}", response_model=Envelope[HolidayResponse])
async def get_holiday(
    holiday_id: uuid.UUID,
    session: SessionDep,
) -> Envelope[HolidayResponse]:
    """Get a single holiday."""
    holiday = await holiday_service.get_holiday(session, holiday_id)
    return Envelope(message="Holiday retrieved successfully", data=HolidayResponse.model_validate(holiday))


@holidays_router.put("/{holiday_id}", response_model=Envelope[HolidayResponse])
async def update_holiday(
    holiday_id: uuid.UUID,
    payload: UpdateHolidayRequest,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[HolidayResponse]:
    """Rename or (de)activate a holiday."""
    holiday = await holiday_service.update_holiday(session, actor, holiday_id, payload)
    return Envelope(message="Holiday updated successfully", data=holiday)


@holidays_router.delete("/{holiday_id}", response_model=Envelope[None])
async def delete_holiday(
    holiday_id: uuid.UUID,
    session: SessionDep,
    actor: ActorDep,
) -> Envelope[None]:
    """Delete a holiday."""
    await holiday_service.delete_holiday(session, actor, holiday_id)
    return Envelope(message="Holiday deleted successfully")
