from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import extract, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.exceptions import AppError
from app.models.enums import AuditAction, AuditEntityType
from app.models.holiday import Holiday
from app.schemas.common import PaginationMeta
from app.schemas.holiday import HolidayResponse
from app.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.holiday import CreateHolidayRequest, UpdateHolidayRequest


def _build_holiday_response(holiday: Holiday) -> HolidayResponse:
    return HolidayResponse.model_validate(holiday)


async def create_holiday(
    session: AsyncSession,
    actor: Actor,
    payload: CreateHolidayRequest,
) -> HolidayResponse:
    """Create a holiday."""
    holiday = Holiday(
        date=payload.date,
        name=payload.name,
        is_active=payload.is_active,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(holiday)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError("Holiday already exists for this date", status_code=409) from None

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(holiday),
    )

    await session.commit()
    await session.refresh(holiday)
    return _build_holiday_response(holiday)


async def list_holidays(
    session: AsyncSession,
    year: int | None = None,
    active_only: bool = False,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[HolidayResponse], PaginationMeta]:
    """List holidays with optional year filter, ordered by date."""
    base_filter = []
    if year is not None:
        base_filter.append(extract("year", col(Holiday.date)) == year)
    if active_only:
        base_filter.append(col(Holiday.is_active).is_(True))

    count_result = await session.execute(select(func.count()).select_from(Holiday).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(Holiday)
        .where(*base_filter)
        .order_by(col(Holiday.date))
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    holidays = list(result.scalars().all())

    return [_build_holiday_response(h) for h in holidays], PaginationMeta.build(page, per_page, total)


async def get_holiday(session: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
    """Get a single holiday or raise 404."""
    holiday = await session.get(Holiday, holiday_id)
    if holiday is None:
        raise AppError("Holiday not found", status_code=404)
    return holiday


async def update_holiday(
    session: AsyncSession,
    actor: Actor,
    holiday_id: uuid.UUID,
    payload: UpdateHolidayRequest,
) -> HolidayResponse:
    """Rename or (de)activate a holiday."""
    holiday = await get_holiday(session, holiday_id)
    before = model_to_audit_dict(holiday)

    if payload.name is not None:
        holiday.name = payload.name
    if payload.is_active is not None:
        holiday.is_active = payload.is_active
    holiday.updated_by = actor.display_name
    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(holiday),
    )

    await session.commit()
    await session.refresh(holiday)
    return _build_holiday_response(holiday)


async def delete_holiday(
    session: AsyncSession,
    actor: Actor,
    holiday_id: uuid.UUID,
) -> None:
    """Delete a holiday."""
    holiday = await get_holiday(session, holiday_id)

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.HOLIDAY,
        entity_id=holiday.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(holiday),
    )

    await session.delete(holiday)
    await session.commit()
