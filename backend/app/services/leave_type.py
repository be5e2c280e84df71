from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from app.exceptions import AppError
from app.models.balance import LeaveBalance
from app.models.enums import AuditAction, AuditEntityType
from app.models.leave_type import LeaveType
from app.models.request import LeaveRequestItem
from app.schemas.leave_type import LeaveTypeCreatedResponse, LeaveTypeResponse
from app.services import balance as balance_service
from app.services.audit import model_to_audit_dict, write_audit_log
from app.services.statistics import invalidate_statistics

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession

    from app.schemas.auth import Actor
    from app.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest

logger = logging.getLogger(__name__)


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse.model_validate(leave_type)


async def get_leave_type_or_404(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    """Fetch a leave type by ID. Raises 404 if not found."""
    result = await session.execute(select(LeaveType).where(col(LeaveType.id) == leave_type_id))
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise AppError("Leave type not found", status_code=404)
    return leave_type


async def _name_taken(session: AsyncSession, name: str, exclude_id: uuid.UUID | None = None) -> bool:
    query = select(LeaveType.id).where(col(LeaveType.name) == name)
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    result = await session.execute(query)
    return result.first() is not None


async def create_leave_type(
    session: AsyncSession,
    actor: Actor,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeCreatedResponse:
    """Create a leave type and give every employee a balance for it this year."""
    if await _name_taken(session, payload.name):
        raise AppError("A leave type with this name already exists", status_code=409)

    leave_type = LeaveType(
        name=payload.name,
        default_duration=payload.default_duration,
        description=payload.description,
        requires_attachment=payload.requires_attachment,
        created_by=actor.display_name,
        updated_by=actor.display_name,
    )
    session.add(leave_type)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise AppError("A leave type with this name already exists", status_code=409) from None

    balances_created = await balance_service.bulk_initialize(
        session, actor, leave_type.id, leave_type.default_duration, date.today().year
    )

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.CREATE,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await session.refresh(leave_type)
    return LeaveTypeCreatedResponse(
        leave_type=_build_leave_type_response(leave_type),
        balances_created=balances_created,
    )


async def list_leave_types(session: AsyncSession, search: str | None = None) -> list[LeaveTypeResponse]:
    """List leave types ordered by name."""
    query = select(LeaveType)
    if search:
        query = query.where(col(LeaveType.name).ilike(f"%{search}%"))
    result = await session.execute(query.order_by(col(LeaveType.name)))
    return [_build_leave_type_response(lt) for lt in result.scalars().all()]


async def get_leave_type(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveTypeResponse:
    """Get a single leave type."""
    return _build_leave_type_response(await get_leave_type_or_404(session, leave_type_id))


async def update_leave_type(
    session: AsyncSession,
    actor: Actor,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Edit a leave type. Existing balances keep their totals."""
    leave_type = await get_leave_type_or_404(session, leave_type_id)
    before = model_to_audit_dict(leave_type)

    if payload.name is not None and await _name_taken(session, payload.name, exclude_id=leave_type_id):
        raise AppError("A leave type with this name already exists", status_code=409)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(leave_type, field, value)
    leave_type.updated_by = actor.display_name

    await session.flush()

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.UPDATE,
        before_json=before,
        after_json=model_to_audit_dict(leave_type),
    )

    await session.commit()
    await invalidate_statistics()
    await session.refresh(leave_type)
    return _build_leave_type_response(leave_type)


async def delete_leave_type(
    session: AsyncSession,
    actor: Actor,
    leave_type_id: uuid.UUID,
) -> None:
    """Delete a leave type that no balance or request item references."""
    leave_type = await get_leave_type_or_404(session, leave_type_id)

    in_use = await session.execute(
        select(
            exists().where(col(LeaveBalance.leave_type_id) == leave_type_id)
            | exists().where(col(LeaveRequestItem.leave_type_id) == leave_type_id)
        )
    )
    if in_use.scalar_one():
        raise AppError("Leave type is in use and cannot be deleted", status_code=400)

    await write_audit_log(
        session,
        actor=actor,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=leave_type.id,
        action=AuditAction.DELETE,
        before_json=model_to_audit_dict(leave_type),
    )

    await session.delete(leave_type)
    await session.commit()
    logger.info("Deleted leave type %s", leave_type_id)
